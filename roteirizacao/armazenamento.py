"""
Persistência de clientes, pedidos, cache de geocodificação e rotas salvas.

Dois backends com a mesma interface:

- :class:`RepositorioLocal` (padrão): JSON para clientes/pedidos/rotas e
  CSV *append-only* para o cache de geocodificação, tudo em ``DATA_DIR``.
  Alterações ficam em memória até :meth:`RepositorioLocal.persistir`.
- :class:`RepositorioSupabase`: tabelas ``customers``, ``orders``,
  ``geocode_cache``, ``saved_routes``, ``saved_route_waypoints`` e
  ``route_metrics`` no Supabase.  Usado quando ``SUPABASE_URL`` e
  ``SUPABASE_KEY`` estão definidos (ver :func:`criar_repositorio`).

Registros são ``dict`` com os nomes de coluna das tabelas, para que o mesmo
registro circule pelos dois backends sem conversão.
"""

import json
import logging
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd
from postgrest.exceptions import APIError
from supabase import Client, create_client

from roteirizacao.config import (
    CLIENTES_JSON,
    DATA_DIR,
    GEOCACHE_CSV,
    PEDIDOS_JSON,
    ROTAS_COORDENADAS_FIXAS,
    ROTAS_JSON,
    credenciais_supabase,
)
from roteirizacao.normalizacao import normalizar_cep, normalizar_texto

log = logging.getLogger(__name__)

Registro = dict[str, Any]

#: UUID nulo usado como filtro "todas as linhas" nos deletes do Supabase
_UUID_NULO = "00000000-0000-0000-0000-000000000000"

COLUNAS_CLIENTE: tuple[str, ...] = (
    "id",
    "short_name",
    "name",
    "address",
    "city",
    "state",
    "cep",
    "lat",
    "lon",
    "geocoded",
    "transportadora_address",
    "transportadora_city",
    "transportadora_state",
    "transportadora_cep",
    "transportadora_lat",
    "transportadora_lon",
    "transportadora_geocoded",
    "use_transportadora",
    "raw_data",
    "created_at",
)

COLUNAS_PEDIDO: tuple[str, ...] = (
    "id",
    "customer_short_name",
    "cliente",
    "data_entrega",
    "rota",
    "rota_normalizada",
    "cep",
    "lat",
    "lon",
    "geocoded",
    "raw_data",
    "created_at",
)

COLUNAS_CHAVE_CACHE: tuple[str, ...] = (
    "entity_type",
    "short_name_normalized",
    "cep_normalized",
    "address",
    "city",
    "state",
)

COLUNAS_CACHE: tuple[str, ...] = COLUNAS_CHAVE_CACHE + (
    "lat",
    "lon",
    "provider",
    "confidence",
    "metadata",
    "geocoded_at",
)

#: Métricas da rota (nomes internos) → colunas da tabela route_metrics
_COLUNAS_METRICAS: dict[str, str] = {
    "distancia_total": "total_distance",
    "duracao_total": "total_duration",
    "total_pontos": "waypoint_count",
    "total_pedidos": "order_count",
    "produzido_kg": "produzido_kg",
    "embalado_kg": "embalado_kg",
}


class ErroArmazenamento(RuntimeError):
    """Falha de leitura/escrita no backend de persistência."""


# ===========================================================================
# Chave do cache de geocodificação
# (entity_type, short_name_normalized, cep_normalized, address, city, state)
# ===========================================================================

ChaveCache = tuple[str, str, str, str, str, str]


def chave_como_registro(chave: ChaveCache) -> Registro:
    """Converte a chave em ``{coluna: valor}`` das colunas-chave do cache."""
    return dict(zip(COLUNAS_CHAVE_CACHE, chave))


def montar_chave_cache(
    tipo: str,
    nome_curto: object,
    cep: object = None,
    endereco: object = None,
    cidade: object = None,
    uf: object = None,
) -> ChaveCache:
    """Monta a chave do cache normalizando cada componente.

    Args:
        tipo:       Tipo de entidade (``"customer"``, ``"transportadora"``,
                    ``"pedido"``).
        nome_curto: Nome abreviado do cliente.
        cep:        CEP (qualquer formato).
        endereco:   Endereço em texto livre.
        cidade:     Cidade.
        uf:         Estado.

    Returns:
        Tupla na ordem de :data:`COLUNAS_CHAVE_CACHE`, com todos os campos
        normalizados (``""`` se ausente).
    """
    return (
        tipo.strip().lower(),
        normalizar_texto(nome_curto),
        normalizar_cep(cep),
        normalizar_texto(endereco),
        normalizar_texto(cidade),
        normalizar_texto(uf),
    )


def _agora_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _registro_cache(
    chave: ChaveCache,
    lat: float | None,
    lon: float | None,
    provider: str | None,
    confidence: float | None = None,
    metadata: dict[str, Any] | None = None,
) -> Registro:
    registro = chave_como_registro(chave)
    registro.update(
        {
            "lat": lat,
            "lon": lon,
            "provider": provider,
            "confidence": confidence,
            "metadata": metadata,
            "geocoded_at": _agora_iso(),
        }
    )
    return registro


def _float_ou_none(valor: object) -> float | None:
    if valor is None or valor == "":
        return None
    try:
        numero = float(valor)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return None if numero != numero else numero


# ===========================================================================
# Backend local (JSON + CSV)
# ===========================================================================


class RepositorioLocal:
    """Backend em arquivos locais.

    Clientes, pedidos e rotas são carregados sob demanda e mantidos em
    memória; :meth:`persistir` grava os arquivos alterados e faz *append* das
    novas entradas de cache no CSV.
    """

    def __init__(self, diretorio: Path = DATA_DIR) -> None:
        self.diretorio = diretorio
        self.clientes_path = diretorio / CLIENTES_JSON.name
        self.pedidos_path = diretorio / PEDIDOS_JSON.name
        self.rotas_path = diretorio / ROTAS_JSON.name
        self.cache_path = diretorio / GEOCACHE_CSV.name

        self._clientes: list[Registro] | None = None
        self._pedidos: list[Registro] | None = None
        self._rotas: list[Registro] | None = None
        self._cache: dict[ChaveCache, Registro] | None = None
        self._cache_novos: list[Registro] = []
        self._alterados: set[str] = set()

    # ------------------------------------------------------------------
    # Leitura/escrita de arquivos
    # ------------------------------------------------------------------

    def _ler_json(self, path: Path) -> list[Registro]:
        if not path.exists():
            return []
        try:
            dados = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            raise ErroArmazenamento(f"Falha ao ler '{path}': {exc}") from exc
        if not isinstance(dados, list):
            raise ErroArmazenamento(f"Formato inválido em '{path}': lista esperada")
        return dados

    def _gravar_json(self, path: Path, registros: list[Registro]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            path.write_text(
                json.dumps(registros, ensure_ascii=False, indent=2, default=str),
                encoding="utf-8",
            )
        except OSError as exc:
            raise ErroArmazenamento(f"Falha ao gravar '{path}': {exc}") from exc

    @property
    def clientes(self) -> list[Registro]:
        if self._clientes is None:
            self._clientes = self._ler_json(self.clientes_path)
        return self._clientes

    @property
    def pedidos(self) -> list[Registro]:
        if self._pedidos is None:
            self._pedidos = self._ler_json(self.pedidos_path)
        return self._pedidos

    @property
    def rotas(self) -> list[Registro]:
        if self._rotas is None:
            self._rotas = self._ler_json(self.rotas_path)
        return self._rotas

    def _carregar_cache(self) -> dict[ChaveCache, Registro]:
        if self._cache is not None:
            return self._cache

        cache: dict[ChaveCache, Registro] = {}
        if self.cache_path.exists():
            try:
                df_cache = pd.read_csv(
                    self.cache_path, dtype=str, keep_default_na=False
                )
                for rec in df_cache.to_dict(orient="records"):
                    chave = tuple(str(rec.get(c, "")) for c in COLUNAS_CHAVE_CACHE)
                    registro = dict(rec)
                    registro["lat"] = _float_ou_none(rec.get("lat"))
                    registro["lon"] = _float_ou_none(rec.get("lon"))
                    registro["confidence"] = _float_ou_none(rec.get("confidence"))
                    registro["metadata"] = (
                        json.loads(rec["metadata"]) if rec.get("metadata") else None
                    )
                    # última ocorrência da chave vence
                    cache[chave] = registro
                log.info("  Cache: %d entradas carregadas", len(cache))
            except (pd.errors.ParserError, OSError, ValueError) as exc:
                log.warning("  Erro ao ler cache (%s). Iniciando cache vazio.", exc)
        self._cache = cache
        return cache

    def _por_id(self, registros: list[Registro], id_: str, mensagem: str) -> Registro:
        for registro in registros:
            if registro.get("id") == id_:
                return registro
        raise ErroArmazenamento(f"{mensagem}: {id_}")

    # ------------------------------------------------------------------
    # Clientes e pedidos
    # ------------------------------------------------------------------

    def listar_clientes(self) -> list[Registro]:
        return sorted(
            (dict(c) for c in self.clientes), key=lambda c: c.get("short_name") or ""
        )

    def listar_pedidos(self) -> list[Registro]:
        return sorted((dict(p) for p in self.pedidos), key=lambda p: p.get("cliente") or "")

    def inserir_clientes(self, registros: list[Registro]) -> None:
        self._inserir(self.clientes, registros, COLUNAS_CLIENTE)
        self._alterados.add("clientes")

    def inserir_pedidos(self, registros: list[Registro]) -> None:
        self._inserir(self.pedidos, registros, COLUNAS_PEDIDO)
        self._alterados.add("pedidos")

    def _inserir(
        self, destino: list[Registro], registros: list[Registro], colunas: tuple[str, ...]
    ) -> None:
        for registro in registros:
            novo = {c: registro.get(c) for c in colunas}
            novo["id"] = registro.get("id") or str(uuid.uuid4())
            novo["created_at"] = registro.get("created_at") or _agora_iso()
            destino.append(novo)

    def limpar_clientes(self) -> None:
        self.clientes.clear()
        self._alterados.add("clientes")

    def limpar_pedidos(self) -> None:
        self.pedidos.clear()
        self._alterados.add("pedidos")

    def atualizar_geo_cliente(
        self, id_: str, lat: float | None, lon: float | None, geocoded: bool
    ) -> None:
        cliente = self._por_id(self.clientes, id_, "Cliente não encontrado")
        cliente.update({"lat": lat, "lon": lon, "geocoded": geocoded})
        self._alterados.add("clientes")

    def atualizar_geo_pedido(
        self,
        id_: str,
        lat: float | None,
        lon: float | None,
        geocoded: bool,
        cep: str | None = None,
    ) -> None:
        pedido = self._por_id(self.pedidos, id_, "Pedido não encontrado")
        pedido.update({"lat": lat, "lon": lon, "geocoded": geocoded, "cep": cep})
        self._alterados.add("pedidos")

    def atualizar_transportadora(
        self,
        id_: str,
        endereco: str | None,
        cidade: str | None,
        uf: str | None,
        cep: str | None,
        usar: bool,
    ) -> None:
        cliente = self._por_id(self.clientes, id_, "Cliente não encontrado")
        cliente.update(
            {
                "transportadora_address": endereco,
                "transportadora_city": cidade,
                "transportadora_state": uf,
                "transportadora_cep": cep,
                "use_transportadora": usar,
                "transportadora_geocoded": False,
                "transportadora_lat": None,
                "transportadora_lon": None,
            }
        )
        self._alterados.add("clientes")

    def atualizar_geo_transportadora(
        self, id_: str, lat: float | None, lon: float | None, geocoded: bool
    ) -> None:
        cliente = self._por_id(self.clientes, id_, "Cliente não encontrado")
        cliente.update(
            {
                "transportadora_lat": lat,
                "transportadora_lon": lon,
                "transportadora_geocoded": geocoded,
            }
        )
        self._alterados.add("clientes")

    def atualizar_pedidos_do_cliente(
        self,
        nome_curto: str,
        lat: float | None,
        lon: float | None,
        geocoded: bool,
        cep: str | None = None,
    ) -> None:
        """Atualiza os pedidos do cliente, exceto os de rota com coordenada fixa.

        Sem *cep* o CEP de cada pedido é mantido.
        """
        for pedido in self.pedidos:
            if pedido.get("customer_short_name") != nome_curto:
                continue
            if pedido.get("rota_normalizada") in ROTAS_COORDENADAS_FIXAS:
                continue
            pedido.update({"lat": lat, "lon": lon, "geocoded": geocoded})
            if cep:
                pedido["cep"] = cep
        self._alterados.add("pedidos")

    # ------------------------------------------------------------------
    # Cache de geocodificação
    # ------------------------------------------------------------------

    def obter_cache(self, chave: ChaveCache) -> Registro | None:
        registro = self._carregar_cache().get(chave)
        return dict(registro) if registro is not None else None

    def gravar_cache(
        self,
        chave: ChaveCache,
        lat: float | None,
        lon: float | None,
        provider: str | None,
        confidence: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        registro = _registro_cache(chave, lat, lon, provider, confidence, metadata)
        self._carregar_cache()[chave] = registro
        self._cache_novos.append(registro)

    def resetar_cache(self) -> Path | None:
        """Faz backup do CSV de cache e o remove. Retorna o caminho do backup."""
        self._cache = {}
        self._cache_novos.clear()
        if not self.cache_path.exists():
            return None
        backup = self.cache_path.with_suffix(".backup.csv")
        shutil.copy2(self.cache_path, backup)
        self.cache_path.unlink()
        log.warning("  reset_cache: backup salvo em '%s', cache zerado.", backup)
        return backup

    # ------------------------------------------------------------------
    # Rotas salvas
    # ------------------------------------------------------------------

    def listar_rotas(self) -> list[Registro]:
        return sorted(
            (dict(r) for r in self.rotas),
            key=lambda r: r.get("criado_em") or "",
            reverse=True,
        )

    def salvar_rota(
        self,
        nome: str,
        rota: Registro,
        waypoints: list[Registro],
        metricas: Registro,
    ) -> Registro:
        salva = {
            "id": str(uuid.uuid4()),
            "nome": nome,
            "criado_em": _agora_iso(),
            "waypoints": list(waypoints),
            "rota": rota,
            "metricas": metricas,
        }
        self.rotas.append(salva)
        self._alterados.add("rotas")
        return dict(salva)

    def remover_rota(self, id_: str) -> None:
        rota = self._por_id(self.rotas, id_, "Rota não encontrada")
        self.rotas.remove(rota)
        self._alterados.add("rotas")

    # ------------------------------------------------------------------

    def persistir(self) -> None:
        """Grava arquivos alterados e faz append das novas entradas de cache."""
        if "clientes" in self._alterados:
            self._gravar_json(self.clientes_path, self.clientes)
        if "pedidos" in self._alterados:
            self._gravar_json(self.pedidos_path, self.pedidos)
        if "rotas" in self._alterados:
            self._gravar_json(self.rotas_path, self.rotas)
        self._alterados.clear()

        if self._cache_novos:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            header = not self.cache_path.exists()
            linhas = [
                {
                    **r,
                    "metadata": json.dumps(r["metadata"], ensure_ascii=False)
                    if r.get("metadata")
                    else "",
                }
                for r in self._cache_novos
            ]
            try:
                pd.DataFrame(linhas, columns=list(COLUNAS_CACHE)).to_csv(
                    self.cache_path,
                    mode="w" if header else "a",
                    header=header,
                    index=False,
                    encoding="utf-8",
                )
            except OSError as exc:
                raise ErroArmazenamento(
                    f"Falha ao gravar cache '{self.cache_path}': {exc}"
                ) from exc
            log.info("  %d entrada(s) salva(s) no cache", len(self._cache_novos))
            self._cache_novos.clear()


# ===========================================================================
# Backend Supabase
# ===========================================================================


class RepositorioSupabase:
    """Backend sobre as tabelas do Supabase (via ``supabase-py``).

    Cada operação é executada imediatamente; :meth:`persistir` não faz nada.
    """

    def __init__(self, cliente: Client) -> None:
        self.cliente = cliente

    @classmethod
    def do_ambiente(cls) -> "RepositorioSupabase":
        credenciais = credenciais_supabase()
        if credenciais is None:
            raise ErroArmazenamento(
                "Supabase não configurado. Defina SUPABASE_URL e SUPABASE_KEY."
            )
        return cls(create_client(*credenciais))

    def _executar(self, consulta: Any, mensagem: str) -> list[Registro]:
        try:
            resposta = consulta.execute()
        except APIError as exc:
            raise ErroArmazenamento(f"{mensagem}: {exc.message}") from exc
        dados = getattr(resposta, "data", None) if resposta is not None else None
        return list(dados or [])

    # ------------------------------------------------------------------
    # Clientes e pedidos
    # ------------------------------------------------------------------

    def listar_clientes(self) -> list[Registro]:
        consulta = (
            self.cliente.table("customers")
            .select(", ".join(COLUNAS_CLIENTE))
            .order("short_name")
        )
        return self._executar(consulta, "Falha ao carregar clientes")

    def listar_pedidos(self) -> list[Registro]:
        consulta = (
            self.cliente.table("orders")
            .select(", ".join(COLUNAS_PEDIDO))
            .order("cliente")
        )
        return self._executar(consulta, "Falha ao carregar pedidos")

    def inserir_clientes(self, registros: list[Registro]) -> None:
        if not registros:
            return
        payload = [
            {c: r.get(c) for c in COLUNAS_CLIENTE if c not in ("id", "created_at")}
            for r in registros
        ]
        self._executar(
            self.cliente.table("customers").insert(payload),
            "Falha ao inserir clientes",
        )

    def inserir_pedidos(self, registros: list[Registro]) -> None:
        if not registros:
            return
        payload = [
            {c: r.get(c) for c in COLUNAS_PEDIDO if c not in ("id", "created_at")}
            for r in registros
        ]
        self._executar(
            self.cliente.table("orders").insert(payload), "Falha ao inserir pedidos"
        )

    def limpar_clientes(self) -> None:
        self._executar(
            self.cliente.table("customers").delete().neq("id", _UUID_NULO),
            "Falha ao limpar clientes",
        )

    def limpar_pedidos(self) -> None:
        self._executar(
            self.cliente.table("orders").delete().neq("id", _UUID_NULO),
            "Falha ao limpar pedidos",
        )

    def atualizar_geo_cliente(
        self, id_: str, lat: float | None, lon: float | None, geocoded: bool
    ) -> None:
        self._executar(
            self.cliente.table("customers")
            .update({"lat": lat, "lon": lon, "geocoded": geocoded})
            .eq("id", id_),
            f"Falha ao atualizar geocodificação do cliente {id_}",
        )

    def atualizar_geo_pedido(
        self,
        id_: str,
        lat: float | None,
        lon: float | None,
        geocoded: bool,
        cep: str | None = None,
    ) -> None:
        self._executar(
            self.cliente.table("orders")
            .update({"lat": lat, "lon": lon, "geocoded": geocoded, "cep": cep})
            .eq("id", id_),
            f"Falha ao atualizar geocodificação do pedido {id_}",
        )

    def atualizar_transportadora(
        self,
        id_: str,
        endereco: str | None,
        cidade: str | None,
        uf: str | None,
        cep: str | None,
        usar: bool,
    ) -> None:
        self._executar(
            self.cliente.table("customers")
            .update(
                {
                    "transportadora_address": endereco,
                    "transportadora_city": cidade,
                    "transportadora_state": uf,
                    "transportadora_cep": cep,
                    "use_transportadora": usar,
                    "transportadora_geocoded": False,
                    "transportadora_lat": None,
                    "transportadora_lon": None,
                }
            )
            .eq("id", id_),
            f"Falha ao salvar transportadora do cliente {id_}",
        )

    def atualizar_geo_transportadora(
        self, id_: str, lat: float | None, lon: float | None, geocoded: bool
    ) -> None:
        self._executar(
            self.cliente.table("customers")
            .update(
                {
                    "transportadora_lat": lat,
                    "transportadora_lon": lon,
                    "transportadora_geocoded": geocoded,
                }
            )
            .eq("id", id_),
            f"Falha ao atualizar geocodificação da transportadora do cliente {id_}",
        )

    def atualizar_pedidos_do_cliente(
        self,
        nome_curto: str,
        lat: float | None,
        lon: float | None,
        geocoded: bool,
        cep: str | None = None,
    ) -> None:
        dados: Registro = {"lat": lat, "lon": lon, "geocoded": geocoded}
        if cep:
            dados["cep"] = cep
        # NOT IN descarta NULL no Postgres; pedidos sem rota também entram
        fixas = ",".join(f'"{rota}"' for rota in ROTAS_COORDENADAS_FIXAS)
        self._executar(
            self.cliente.table("orders")
            .update(dados)
            .eq("customer_short_name", nome_curto)
            .or_(f"rota_normalizada.is.null,rota_normalizada.not.in.({fixas})"),
            f"Falha ao atualizar pedidos de {nome_curto}",
        )

    # ------------------------------------------------------------------
    # Cache de geocodificação
    # ------------------------------------------------------------------

    def obter_cache(self, chave: ChaveCache) -> Registro | None:
        dados = self._executar(
            self.cliente.table("geocode_cache")
            .select("*")
            .match(chave_como_registro(chave))
            .limit(1),
            "Falha ao consultar cache de geocodificação",
        )
        return dados[0] if dados else None

    def gravar_cache(
        self,
        chave: ChaveCache,
        lat: float | None,
        lon: float | None,
        provider: str | None,
        confidence: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._executar(
            self.cliente.table("geocode_cache").upsert(
                _registro_cache(chave, lat, lon, provider, confidence, metadata),
                on_conflict=",".join(COLUNAS_CHAVE_CACHE),
            ),
            "Falha ao atualizar cache de geocodificação",
        )

    def resetar_cache(self) -> Path | None:
        self._executar(
            self.cliente.table("geocode_cache").delete().neq("id", _UUID_NULO),
            "Falha ao limpar cache de geocodificação",
        )
        return None

    # ------------------------------------------------------------------
    # Rotas salvas
    # ------------------------------------------------------------------

    def listar_rotas(self) -> list[Registro]:
        consulta = (
            self.cliente.table("saved_routes")
            .select(
                "id, name, created_at, route_data, "
                "saved_route_waypoints(id, position, waypoint_data), "
                "route_metrics(" + ", ".join(_COLUNAS_METRICAS.values()) + ")"
            )
            .order("created_at", desc=True)
        )
        linhas = self._executar(consulta, "Falha ao carregar rotas salvas")
        return [_mapear_rota_salva(linha) for linha in linhas]

    def salvar_rota(
        self,
        nome: str,
        rota: Registro,
        waypoints: list[Registro],
        metricas: Registro,
    ) -> Registro:
        linhas = self._executar(
            self.cliente.table("saved_routes").insert(
                {"name": nome, "route_data": rota}
            ),
            "Falha ao salvar rota",
        )
        if not linhas:
            raise ErroArmazenamento("Não foi possível salvar a rota.")
        linha = linhas[0]
        id_rota = linha["id"]

        try:
            if waypoints:
                self._executar(
                    self.cliente.table("saved_route_waypoints").insert(
                        [
                            {"route_id": id_rota, "position": i, "waypoint_data": wp}
                            for i, wp in enumerate(waypoints)
                        ]
                    ),
                    "Falha ao salvar pontos da rota",
                )
            self._executar(
                self.cliente.table("route_metrics").insert(
                    {
                        "route_id": id_rota,
                        **{
                            coluna: metricas.get(campo, 0)
                            for campo, coluna in _COLUNAS_METRICAS.items()
                        },
                    }
                ),
                "Falha ao salvar métricas da rota",
            )
        except ErroArmazenamento:
            self._executar(
                self.cliente.table("saved_routes").delete().eq("id", id_rota),
                "Falha ao desfazer rota parcialmente salva",
            )
            raise

        return {
            "id": id_rota,
            "nome": linha.get("name", nome),
            "criado_em": linha.get("created_at"),
            "waypoints": list(waypoints),
            "rota": rota,
            "metricas": metricas,
        }

    def remover_rota(self, id_: str) -> None:
        self._executar(
            self.cliente.table("saved_routes").delete().eq("id", id_),
            "Falha ao remover rota salva",
        )

    def persistir(self) -> None:
        return None


def _mapear_rota_salva(linha: Registro) -> Registro:
    """Converte a linha aninhada de ``saved_routes`` em rota salva interna."""
    pontos = sorted(
        linha.get("saved_route_waypoints") or [], key=lambda p: p.get("position", 0)
    )
    metricas_linha = linha.get("route_metrics")
    if isinstance(metricas_linha, list):
        metricas_linha = metricas_linha[0] if metricas_linha else None

    metricas: Registro | None = None
    if metricas_linha:
        metricas = {
            campo: _float_ou_none(metricas_linha.get(coluna)) or 0
            for campo, coluna in _COLUNAS_METRICAS.items()
        }
        metricas["total_pontos"] = int(metricas["total_pontos"])
        metricas["total_pedidos"] = int(metricas["total_pedidos"])

    return {
        "id": linha.get("id"),
        "nome": linha.get("name"),
        "criado_em": linha.get("created_at"),
        "waypoints": [p.get("waypoint_data") for p in pontos],
        "rota": linha.get("route_data"),
        "metricas": metricas,
    }


# ===========================================================================
# Fábrica
# ===========================================================================


def criar_repositorio(
    diretorio: Path = DATA_DIR,
) -> RepositorioLocal | RepositorioSupabase:
    """Escolhe o backend: Supabase se houver credenciais, senão local."""
    if credenciais_supabase() is not None:
        log.info("  Backend de dados: Supabase")
        return RepositorioSupabase.do_ambiente()
    log.info("  Backend de dados: local (%s)", diretorio)
    return RepositorioLocal(diretorio)
