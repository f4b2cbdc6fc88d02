"""
Geocodificação de clientes, pedidos e transportadoras.

Ordem de prioridade por pedido:

  1. **Rota predefinida** — coordenadas fixas de :data:`ROTAS_COORDENADAS_FIXAS`
  2. **Cliente** — coordenadas efetivas do cliente (transportadora, se ativa)
  3. **CEP** — consulta contextual ``"<cep>, <CIDADE>, <UF>, Brasil"`` e depois
     o CEP puro, cada uma no OpenRouteService e depois no Nominatim
  4. **Endereço** — texto livre no OpenRouteService e depois no Nominatim
  5. **Nenhum** — coordenadas nulas e registro marcado como não geocodificado

Antes de qualquer chamada externa o cache persistido é consultado pela chave
composta (ver :func:`~roteirizacao.armazenamento.montar_chave_cache`).  Acertos
e falhas explícitas (``provider="nenhum"``) são gravados de volta.

Uso standalone::

    python -m roteirizacao.geocodificacao
    python -m roteirizacao.geocodificacao --limite 20
    python -m roteirizacao.geocodificacao --retentar-falhas
"""

import logging
import re
from functools import partial
from pathlib import Path
from typing import Any, Callable

import requests
from geopy.exc import GeocoderServiceError, GeocoderTimedOut, GeocoderUnavailable
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim
from tqdm import tqdm

from roteirizacao.armazenamento import ChaveCache, montar_chave_cache
from roteirizacao.config import (
    BRASIL_LIMITES,
    CEP_PADRAO,
    COLUNAS_CEP_PEDIDO,
    DATA_DIR,
    GEOCODE_DELAY,
    HEADERS,
    HTTP_TIMEOUT,
    NOMINATIM_USER_AGENT,
    ORS_GEOCODE_URL,
    ROTAS_CEP_PADRAO,
    ROTAS_COORDENADAS_FIXAS,
    ors_api_key,
)
from roteirizacao.normalizacao import (
    normalizar_cep,
    normalizar_endereco,
    normalizar_texto,
    separar_cidade_uf,
)

log = logging.getLogger(__name__)

Coordenadas = tuple[float, float]

#: Callback de progresso: (etapa, processados, total, rótulo)
CallbackProgresso = Callable[[str, int, int, str | None], None]

#: Provedor gravado no cache para falhas explícitas
PROVEDOR_FALHA = "nenhum"

_ERROS_GEOPY = (GeocoderServiceError, GeocoderTimedOut, GeocoderUnavailable)


class ErroGeocodificacao(RuntimeError):
    """Geocodificação explícita (transportadora) sem resultado ou inválida."""


# ---------------------------------------------------------------------------
# Resultado de geocodificação de um registro: (coords, cep, origem)
# origem ∈ {"cache","rota","cliente","cep","endereco","nenhum"}
# ---------------------------------------------------------------------------
ResultadoGeo = tuple[Coordenadas | None, str | None, str]


# ===========================================================================
# Coordenadas
# ===========================================================================


def dentro_do_brasil(lat: float, lon: float) -> bool:
    """Indica se o ponto está na caixa envolvente do Brasil."""
    return (
        BRASIL_LIMITES["min_lat"] <= lat <= BRASIL_LIMITES["max_lat"]
        and BRASIL_LIMITES["min_lon"] <= lon <= BRASIL_LIMITES["max_lon"]
    )


def sanitizar_coordenadas(coords: Any) -> Coordenadas | None:
    """Valida ``(lat, lon)``: numéricos, finitos e dentro do Brasil."""
    if not coords:
        return None
    try:
        lat, lon = float(coords[0]), float(coords[1])
    except (TypeError, ValueError, IndexError):
        return None
    if lat != lat or lon != lon:
        return None
    return (lat, lon) if dentro_do_brasil(lat, lon) else None


def coordenadas_efetivas(cliente: dict[str, Any] | None) -> Coordenadas | None:
    """Coordenadas usadas pelos pedidos do cliente.

    Transportadora ativa e geocodificada tem precedência sobre o endereço
    próprio do cliente.
    """
    if not cliente:
        return None
    if cliente.get("use_transportadora") and cliente.get("transportadora_geocoded"):
        coords = sanitizar_coordenadas(
            (cliente.get("transportadora_lat"), cliente.get("transportadora_lon"))
        )
        if coords:
            return coords
    if cliente.get("geocoded"):
        return sanitizar_coordenadas((cliente.get("lat"), cliente.get("lon")))
    return None


# ===========================================================================
# Provedores em cascata (ORS → Nominatim)
# ===========================================================================


class GeocodificadorEmCascata:
    """Consulta OpenRouteService e Nominatim com rate limit e memo por execução.

    Cada provedor é envolvido por um :class:`~geopy.extra.rate_limiter.RateLimiter`
    com atraso mínimo de :data:`GEOCODE_DELAY`.  Consultas repetidas (mesmo
    texto normalizado) dentro da execução não chamam o provedor de novo,
    inclusive quando a resposta anterior foi vazia.

    Args:
        api_key:          Chave do ORS; ``None`` lê ``ORS_API_KEY``.  Sem chave o
                          ORS é ignorado.
        delay:            Atraso mínimo (s) entre chamadas de cada provedor.
        buscar_ors:       Função ``texto -> (lat, lon) | None`` (injeção em testes).
        buscar_nominatim: Função ``texto -> Location | None`` (injeção em testes).
    """

    def __init__(
        self,
        api_key: str | None = None,
        delay: float = GEOCODE_DELAY,
        buscar_ors: Callable[[str], Coordenadas | None] | None = None,
        buscar_nominatim: Callable[[str], Any] | None = None,
    ) -> None:
        self.api_key = ors_api_key() if api_key is None else api_key
        self._memo: dict[tuple[str, str], Coordenadas | None] = {}

        if buscar_ors is None:
            buscar_ors = RateLimiter(
                self._requisitar_ors, min_delay_seconds=delay, error_wait_seconds=5
            )
        if buscar_nominatim is None:
            geolocator = Nominatim(user_agent=NOMINATIM_USER_AGENT)
            buscar_nominatim = RateLimiter(
                partial(geolocator.geocode, exactly_one=True, country_codes="br"),
                min_delay_seconds=delay,
                error_wait_seconds=5,
            )
        self._buscar_ors = buscar_ors
        self._buscar_nominatim = buscar_nominatim

    def _requisitar_ors(self, consulta: str) -> Coordenadas | None:
        resp = requests.get(
            ORS_GEOCODE_URL,
            params={
                "api_key": self.api_key,
                "text": consulta,
                "boundary.country": "BR",
                "size": 1,
            },
            headers=HEADERS,
            timeout=HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        features = resp.json().get("features") or []
        if not features:
            return None
        coordenadas = (features[0].get("geometry") or {}).get("coordinates") or []
        if len(coordenadas) < 2:
            return None
        lon, lat = coordenadas[0], coordenadas[1]
        return (lat, lon)

    def ors(self, consulta: str) -> Coordenadas | None:
        if not self.api_key:
            return None
        chave = ("ors", normalizar_texto(consulta))
        if chave in self._memo:
            return self._memo[chave]

        try:
            coords = sanitizar_coordenadas(self._buscar_ors(consulta))
        except (requests.RequestException, ValueError) as exc:
            log.warning("  Falha no ORS para '%s': %s", consulta, exc)
            coords = None

        self._memo[chave] = coords
        return coords

    def nominatim(self, consulta: str) -> Coordenadas | None:
        chave = ("nominatim", normalizar_texto(consulta))
        if chave in self._memo:
            return self._memo[chave]

        coords: Coordenadas | None = None
        try:
            loc = self._buscar_nominatim(consulta)
            if loc:
                coords = sanitizar_coordenadas((loc.latitude, loc.longitude))
        except _ERROS_GEOPY as exc:
            log.warning("  Falha no Nominatim para '%s': %s", consulta, exc)

        self._memo[chave] = coords
        return coords

    def endereco(self, consulta: str) -> Coordenadas | None:
        """Texto livre: ORS e, sem resultado, Nominatim."""
        return self.ors(consulta) or self.nominatim(consulta)

    def cep(
        self, cep: object, cidade: object = None, uf: object = None
    ) -> Coordenadas | None:
        """Geocodifica um CEP em cascata de quatro consultas.

        1. ``"<dígitos>, <CIDADE>, <UF>, Brasil"`` no ORS, depois no Nominatim
        2. CEP formatado (``NNNNN-NNN``) no ORS, depois no Nominatim

        O resultado é memorizado pelos dígitos do CEP.
        """
        cep_normalizado = normalizar_cep(cep)
        if not cep_normalizado:
            return None
        digitos = re.sub(r"[^0-9]", "", cep_normalizado)
        chave = ("cep", digitos)
        if chave in self._memo:
            return self._memo[chave]

        partes = [digitos, normalizar_texto(cidade), normalizar_texto(uf), "Brasil"]
        contextual = ", ".join(p for p in partes if p)

        coords = (
            self.ors(contextual)
            or self.nominatim(contextual)
            or self.ors(cep_normalizado)
            or self.nominatim(cep_normalizado)
        )
        coords = sanitizar_coordenadas(coords)
        self._memo[chave] = coords
        return coords


# ===========================================================================
# Cache persistido
# ===========================================================================


def _consultar_cache(
    repo: Any, chave: ChaveCache, retentar_falhas: bool
) -> tuple[bool, Coordenadas | None]:
    """Retorna ``(acerto, coords)``.

    Falha explícita gravada conta como acerto com ``coords=None``, exceto com
    ``retentar_falhas``.
    """
    registro = repo.obter_cache(chave)
    if registro is None:
        return False, None
    coords = sanitizar_coordenadas((registro.get("lat"), registro.get("lon")))
    if coords:
        return True, coords
    if registro.get("provider") == PROVEDOR_FALHA and not retentar_falhas:
        return True, None
    return False, None


def _gravar_cache(
    repo: Any, chave: ChaveCache, coords: Coordenadas | None, provedor: str | None
) -> None:
    if coords:
        repo.gravar_cache(chave, coords[0], coords[1], provedor)
    else:
        repo.gravar_cache(chave, None, None, PROVEDOR_FALHA)


def _cascata(
    geo: GeocodificadorEmCascata,
    cep: str,
    cidade: object,
    uf: object,
    endereco: str,
) -> tuple[Coordenadas | None, str]:
    """CEP e depois endereço. Retorna ``(coords, origem)``."""
    if cep:
        coords = geo.cep(cep, cidade, uf)
        if coords:
            return coords, "cep"
    if endereco:
        coords = geo.endereco(endereco)
        if coords:
            return coords, "endereco"
    return None, PROVEDOR_FALHA


# ===========================================================================
# Geocodificação por entidade
# ===========================================================================


def geocodificar_cliente(
    repo: Any,
    cliente: dict[str, Any],
    geo: GeocodificadorEmCascata,
    retentar_falhas: bool = False,
) -> ResultadoGeo:
    """Geocodifica um cliente: cache → CEP → endereço.

    Atualiza o cliente no repositório (coordenadas ou não geocodificado) e
    grava o resultado no cache.
    """
    cep = normalizar_cep(cliente.get("cep"))
    chave = montar_chave_cache(
        "customer",
        cliente.get("short_name"),
        cliente.get("cep"),
        cliente.get("address"),
        cliente.get("city"),
        cliente.get("state"),
    )

    acerto, coords = _consultar_cache(repo, chave, retentar_falhas)
    if acerto:
        origem = "cache"
    else:
        endereco = normalizar_endereco(
            [cliente.get("address"), cliente.get("city"), cliente.get("state")]
        )
        coords, origem = _cascata(
            geo, cep, cliente.get("city"), cliente.get("state"), endereco
        )
        _gravar_cache(repo, chave, coords, origem)

    if coords:
        repo.atualizar_geo_cliente(cliente["id"], coords[0], coords[1], True)
    else:
        repo.atualizar_geo_cliente(cliente["id"], None, None, False)
        log.warning("  Cliente não geocodificado: '%s'", cliente.get("short_name"))
    return (coords, cep or None, origem)


def _cep_do_pedido(pedido: dict[str, Any], rota: str) -> str:
    raw = pedido.get("raw_data") or {}
    candidatos = [pedido.get("cep")] + [raw.get(c) for c in COLUNAS_CEP_PEDIDO]
    for candidato in candidatos:
        cep = normalizar_cep(candidato)
        if cep:
            return cep
    return ROTAS_CEP_PADRAO.get(rota, "")


def _endereco_do_pedido(pedido: dict[str, Any], cliente: dict[str, Any] | None) -> str:
    """``Local Entrega`` + ``Cidade Entrega`` (ou cidade/UF do cliente)."""
    raw = pedido.get("raw_data") or {}
    local = raw.get("Local Entrega")
    local = local.strip() if isinstance(local, str) else ""
    cidade_entrega = raw.get("Cidade Entrega")
    cidade_entrega = cidade_entrega.strip() if isinstance(cidade_entrega, str) else ""
    cidade_formatada = re.sub(r"\s*-\s*", ", ", cidade_entrega, count=1)

    partes: list[object] = []
    if local:
        partes.append(local)
    if cidade_formatada:
        partes.append(cidade_formatada)
    elif cliente and (cliente.get("city") or cliente.get("state")):
        partes.append(
            ", ".join(str(v) for v in (cliente.get("city"), cliente.get("state")) if v)
        )
    return normalizar_endereco(partes)


def geocodificar_pedido(
    repo: Any,
    pedido: dict[str, Any],
    cliente: dict[str, Any] | None,
    geo: GeocodificadorEmCascata,
    retentar_falhas: bool = False,
) -> ResultadoGeo:
    """Geocodifica um pedido seguindo a ordem de prioridade do módulo.

    Args:
        repo:            Repositório de dados.
        pedido:          Registro ``orders``.
        cliente:         Cliente vinculado (já atualizado pela fase de clientes)
                         ou ``None``.
        geo:             Geocodificador em cascata.
        retentar_falhas: Ignora falhas explícitas gravadas no cache.

    Returns:
        Tupla ``(coords, cep, origem)``; ``origem="cliente"`` indica
        reaproveitamento das coordenadas do cliente.
    """
    raw = pedido.get("raw_data") or {}
    rota = normalizar_texto(
        pedido.get("rota_normalizada") or pedido.get("rota") or raw.get("Rota")
    )
    cep = _cep_do_pedido(pedido, rota)
    cep_cliente = normalizar_cep((cliente or {}).get("cep"))

    fixas = ROTAS_COORDENADAS_FIXAS.get(rota)
    if fixas:
        cep_final = cep or cep_cliente or CEP_PADRAO
        repo.atualizar_geo_pedido(pedido["id"], fixas[0], fixas[1], True, cep_final)
        return (fixas, cep_final, "rota")

    efetivas = coordenadas_efetivas(cliente)
    if efetivas:
        cep_final = cep or cep_cliente or None
        repo.atualizar_geo_pedido(pedido["id"], efetivas[0], efetivas[1], True, cep_final)
        return (efetivas, cep_final, "cliente")

    cidade, uf = separar_cidade_uf(raw.get("Cidade Entrega"))
    cidade = cidade or (cliente or {}).get("city")
    uf = uf or (cliente or {}).get("state")
    endereco = _endereco_do_pedido(pedido, cliente)

    chave = montar_chave_cache(
        "pedido", pedido.get("customer_short_name"), cep, endereco, cidade, uf
    )
    acerto, coords = _consultar_cache(repo, chave, retentar_falhas)
    if acerto:
        origem = "cache"
    else:
        coords, origem = _cascata(geo, cep, cidade, uf, endereco)
        _gravar_cache(repo, chave, coords, origem)

    cep_final = cep or None
    if coords:
        repo.atualizar_geo_pedido(pedido["id"], coords[0], coords[1], True, cep_final)
        return (coords, cep_final, origem)

    repo.atualizar_geo_pedido(pedido["id"], None, None, False, cep_final)
    log.warning(
        "  Pedido não geocodificado: %s (%s)", pedido.get("id"), pedido.get("cliente")
    )
    return (None, cep_final, origem)


# ===========================================================================
# Transportadora
# ===========================================================================


def validar_transportadora(
    usar: bool,
    endereco: str | None,
    cidade: str | None,
    uf: str | None,
    cep: str | None,
) -> dict[str, str]:
    """Valida o cadastro de transportadora; retorna ``{campo: mensagem}``.

    Com a transportadora desativada nada é validado.
    """
    erros: dict[str, str] = {}
    if not usar:
        return erros

    endereco = (endereco or "").strip()
    cidade = (cidade or "").strip()
    uf = (uf or "").strip().upper()
    digitos = re.sub(r"[^0-9]", "", cep or "")

    if not endereco:
        erros["endereco"] = "Informe o endereço da transportadora."
    if not cidade:
        erros["cidade"] = "Informe a cidade da transportadora."
    if len(uf) != 2:
        erros["uf"] = "Informe o estado com duas letras."
    if (cep or "").strip() and len(digitos) != 8:
        erros["cep"] = "CEP deve conter 8 dígitos."
    if not digitos and (not endereco or not cidade or len(uf) != 2):
        erros["geral"] = "Informe CEP válido ou endereço completo."
    return erros


def _liberar_pedidos(repo: Any, cliente: dict[str, Any]) -> None:
    """Zera as coordenadas dos pedidos do cliente para o próximo lote refazer."""
    repo.atualizar_pedidos_do_cliente(cliente["short_name"], None, None, False)


def salvar_transportadora(
    repo: Any,
    cliente: dict[str, Any],
    usar: bool,
    endereco: str | None = None,
    cidade: str | None = None,
    uf: str | None = None,
    cep: str | None = None,
) -> dict[str, Any]:
    """Valida e grava a transportadora do cliente, zerando a geocodificação dela.

    Os pedidos do cliente (fora das rotas com coordenada fixa) também são
    zerados; :func:`geocodificar_transportadora` ou o próximo lote os resolvem
    de novo.

    Returns:
        Cópia do cliente com os campos de transportadora atualizados.

    Raises:
        ValueError: Se a validação falhar (mensagens concatenadas).
    """
    erros = validar_transportadora(usar, endereco, cidade, uf, cep)
    if erros:
        raise ValueError(" ".join(erros.values()))

    dados = {
        "transportadora_address": (endereco or "").strip() or None if usar else None,
        "transportadora_city": (cidade or "").strip() or None if usar else None,
        "transportadora_state": (uf or "").strip().upper() or None if usar else None,
        "transportadora_cep": normalizar_cep(cep) or None if usar else None,
    }
    repo.atualizar_transportadora(
        cliente["id"],
        dados["transportadora_address"],
        dados["transportadora_city"],
        dados["transportadora_state"],
        dados["transportadora_cep"],
        usar,
    )
    _liberar_pedidos(repo, cliente)
    atualizado = dict(cliente)
    atualizado.update(dados)
    atualizado.update(
        {
            "use_transportadora": usar,
            "transportadora_geocoded": False,
            "transportadora_lat": None,
            "transportadora_lon": None,
        }
    )
    return atualizado


def geocodificar_transportadora(
    repo: Any,
    cliente: dict[str, Any],
    geo: GeocodificadorEmCascata | None = None,
    retentar_falhas: bool = False,
) -> ResultadoGeo:
    """Geocodifica a transportadora do cliente e propaga para seus pedidos.

    Transportadora desativada: limpa as coordenadas dela, zera as dos pedidos
    e retorna sem consultar nada.

    Raises:
        ErroGeocodificacao: Sem CEP nem endereço, ou nenhuma fonte resolveu.
    """
    try:
        if not cliente.get("use_transportadora"):
            repo.atualizar_geo_transportadora(cliente["id"], None, None, False)
            _liberar_pedidos(repo, cliente)
            return (None, None, PROVEDOR_FALHA)

        cep = normalizar_cep(cliente.get("transportadora_cep"))
        endereco = normalizar_endereco(
            [
                cliente.get("transportadora_address"),
                cliente.get("transportadora_city"),
                cliente.get("transportadora_state"),
            ]
        )
        if not cep and not endereco:
            raise ErroGeocodificacao(
                "Informe pelo menos o CEP ou o endereço completo da transportadora."
            )

        chave = montar_chave_cache(
            "transportadora",
            cliente.get("short_name"),
            cliente.get("transportadora_cep"),
            endereco,
            cliente.get("transportadora_city"),
            cliente.get("transportadora_state"),
        )
        acerto, coords = _consultar_cache(repo, chave, retentar_falhas)
        if acerto:
            origem = "cache"
        else:
            geo = geo or GeocodificadorEmCascata()
            coords, origem = _cascata(
                geo,
                cep,
                cliente.get("transportadora_city"),
                cliente.get("transportadora_state"),
                endereco,
            )
            _gravar_cache(repo, chave, coords, origem)

        if not coords:
            repo.atualizar_geo_transportadora(cliente["id"], None, None, False)
            raise ErroGeocodificacao(
                "Não foi possível geocodificar a transportadora informada."
            )

        repo.atualizar_geo_transportadora(cliente["id"], coords[0], coords[1], True)
        repo.atualizar_pedidos_do_cliente(
            cliente["short_name"], coords[0], coords[1], True, cep or None
        )
        log.info(
            "  Transportadora de '%s' geocodificada (%s): %.6f, %.6f",
            cliente.get("short_name"),
            origem,
            coords[0],
            coords[1],
        )
        return (coords, cep or None, origem)
    finally:
        repo.persistir()


# ===========================================================================
# Lote em duas fases
# ===========================================================================


def _pendente(registro: dict[str, Any]) -> bool:
    return (
        not registro.get("geocoded")
        or registro.get("lat") is None
        or registro.get("lon") is None
    )


def geocodificar_pendentes(
    repo: Any,
    geo: GeocodificadorEmCascata | None = None,
    ao_progredir: CallbackProgresso | None = None,
    limite: int | None = None,
    retentar_falhas: bool = False,
) -> dict[str, dict[str, int]]:
    """Geocodifica clientes pendentes e depois pedidos pendentes.

    A fase de clientes termina antes da de pedidos, para que os pedidos
    reaproveitem as coordenadas recém-obtidas.  Erro em um registro é
    contabilizado como falha e não interrompe o lote.

    Args:
        repo:            Repositório de dados.
        geo:             Geocodificador; ``None`` cria um com provedores reais.
        ao_progredir:    Callback ``(etapa, processados, total, rotulo)``.
        limite:          Máximo de registros processados por fase.
        retentar_falhas: Ignora falhas explícitas gravadas no cache.

    Returns:
        Resumo ``{"clientes": {...}, "pedidos": {...}}`` com ``total``,
        ``geocodificados``, ``falhas``, ``do_cache`` e, para pedidos,
        ``reaproveitados_do_cliente``.
    """
    log.info("[GEOCODIFICAÇÃO] Processando clientes e pedidos pendentes...")
    geo = geo or GeocodificadorEmCascata()
    if not geo.api_key:
        log.info("  ORS_API_KEY ausente: usando apenas o Nominatim")

    def _progresso(etapa: str, processados: int, total: int, rotulo: object) -> None:
        if ao_progredir is not None:
            ao_progredir(etapa, processados, total, str(rotulo) if rotulo else None)

    clientes = repo.listar_clientes()
    por_nome = {normalizar_texto(c.get("short_name")): dict(c) for c in clientes}

    pendentes = [c for c in clientes if _pendente(c)]
    if limite is not None:
        pendentes = pendentes[:limite]
    resumo_clientes = {"total": len(pendentes), "geocodificados": 0, "falhas": 0, "do_cache": 0}

    try:
        for indice, cliente in enumerate(tqdm(pendentes, desc="Clientes", unit="cli")):
            rotulo = cliente.get("name") or cliente.get("short_name")
            _progresso("clientes", indice, len(pendentes), rotulo)
            try:
                coords, _, origem = geocodificar_cliente(repo, cliente, geo, retentar_falhas)
            except Exception as e:  # noqa: BLE001
                log.error("  Erro ao geocodificar cliente %s: %s", cliente.get("short_name"), e)
                resumo_clientes["falhas"] += 1
            else:
                if coords:
                    resumo_clientes["geocodificados"] += 1
                    por_nome[normalizar_texto(cliente.get("short_name"))].update(
                        {"lat": coords[0], "lon": coords[1], "geocoded": True}
                    )
                else:
                    resumo_clientes["falhas"] += 1
                if origem == "cache":
                    resumo_clientes["do_cache"] += 1
            _progresso("clientes", indice + 1, len(pendentes), rotulo)

        pedidos = [p for p in repo.listar_pedidos() if _pendente(p)]
        if limite is not None:
            pedidos = pedidos[:limite]
        resumo_pedidos = {
            "total": len(pedidos),
            "geocodificados": 0,
            "falhas": 0,
            "reaproveitados_do_cliente": 0,
            "do_cache": 0,
        }

        for indice, pedido in enumerate(tqdm(pedidos, desc="Pedidos", unit="ped")):
            rotulo = pedido.get("cliente") or (pedido.get("raw_data") or {}).get("Cliente")
            _progresso("pedidos", indice, len(pedidos), rotulo)
            cliente = por_nome.get(normalizar_texto(pedido.get("customer_short_name")))
            try:
                coords, _, origem = geocodificar_pedido(repo, pedido, cliente, geo, retentar_falhas)
            except Exception as e:  # noqa: BLE001
                log.error("  Erro ao geocodificar pedido %s: %s", pedido.get("id"), e)
                resumo_pedidos["falhas"] += 1
            else:
                if coords:
                    resumo_pedidos["geocodificados"] += 1
                    if origem == "cliente":
                        resumo_pedidos["reaproveitados_do_cliente"] += 1
                else:
                    resumo_pedidos["falhas"] += 1
                if origem == "cache":
                    resumo_pedidos["do_cache"] += 1
            _progresso("pedidos", indice + 1, len(pedidos), rotulo)
    finally:
        repo.persistir()

    log.info(
        "  Clientes: %d/%d geocodificados (%d do cache)",
        resumo_clientes["geocodificados"],
        resumo_clientes["total"],
        resumo_clientes["do_cache"],
    )
    log.info(
        "  Pedidos: %d/%d geocodificados (%d reaproveitados do cliente, %d do cache)",
        resumo_pedidos["geocodificados"],
        resumo_pedidos["total"],
        resumo_pedidos["reaproveitados_do_cliente"],
        resumo_pedidos["do_cache"],
    )
    return {"clientes": resumo_clientes, "pedidos": resumo_pedidos}


# ===========================================================================
# Busca livre e geocodificação reversa (Nominatim)
# ===========================================================================


def buscar_endereco(
    consulta: str, limite: int = 5, geolocator: Nominatim | None = None
) -> list[dict[str, Any]]:
    """Busca endereços no Brasil por texto livre.

    Returns:
        Lista de ``{"endereco", "lat", "lon"}``; ``[]`` para consultas com
        menos de 3 caracteres ou falha do serviço.
    """
    if not consulta or len(consulta.strip()) < 3:
        return []
    geolocator = geolocator or Nominatim(user_agent=NOMINATIM_USER_AGENT)
    try:
        locais = geolocator.geocode(
            consulta,
            exactly_one=False,
            limit=limite,
            country_codes="br",
            addressdetails=True,
        )
    except _ERROS_GEOPY as exc:
        log.warning("  Falha na busca de '%s': %s", consulta, exc)
        return []
    return [
        {"endereco": loc.address, "lat": loc.latitude, "lon": loc.longitude}
        for loc in locais or []
    ]


def endereco_reverso(
    lat: float, lon: float, geolocator: Nominatim | None = None
) -> str:
    """Endereço legível de um ponto; ``"lat, lon"`` (4 casas) se falhar."""
    fallback = f"{lat:.4f}, {lon:.4f}"
    geolocator = geolocator or Nominatim(user_agent=NOMINATIM_USER_AGENT)
    try:
        loc = geolocator.reverse((lat, lon), exactly_one=True)
    except _ERROS_GEOPY as exc:
        log.warning("  Falha na geocodificação reversa de %s: %s", fallback, exc)
        return fallback
    if loc is None or not loc.address:
        return fallback
    return loc.address


# ===========================================================================
# Entrypoint standalone: python -m roteirizacao.geocodificacao
# ===========================================================================


def _build_arg_parser():  # type: ignore[return]
    import argparse

    parser = argparse.ArgumentParser(
        prog="python -m roteirizacao.geocodificacao",
        description="[GEOCODIFICAÇÃO] Geocodifica clientes e pedidos pendentes.",
    )
    parser.add_argument(
        "--limite",
        type=int,
        default=None,
        metavar="N",
        help="Processa no máximo N registros por fase (útil para testes).",
    )
    parser.add_argument(
        "--retentar-falhas",
        action="store_true",
        help="Ignora falhas gravadas no cache e consulta os provedores de novo.",
    )
    parser.add_argument(
        "--destino",
        type=Path,
        default=DATA_DIR,
        metavar="DIR",
        help=f"Diretório de dados do backend local (padrão: {DATA_DIR})",
    )
    return parser


if __name__ == "__main__":
    import sys

    from roteirizacao.armazenamento import criar_repositorio

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    args = _build_arg_parser().parse_args()
    resumo = geocodificar_pendentes(
        criar_repositorio(args.destino),
        limite=args.limite,
        retentar_falhas=args.retentar_falhas,
    )
    print(
        f"\nClientes: {resumo['clientes']['geocodificados']}/{resumo['clientes']['total']}"
        f" | Pedidos: {resumo['pedidos']['geocodificados']}/{resumo['pedidos']['total']}"
    )
    sys.exit(0)
