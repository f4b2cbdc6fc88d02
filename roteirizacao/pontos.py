"""
Seleção de pedidos e gerenciamento dos pontos (waypoints) da rota.

A lista de pontos sempre começa pelo ponto de partida fixo
(:data:`~roteirizacao.config.PONTO_PARTIDA`), que não pode ser removido nem
reordenado.  Todas as operações retornam uma lista nova com ``ordem``
renumerada a partir de 0.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Iterable
from urllib.parse import quote

from roteirizacao.config import PONTO_PARTIDA
from roteirizacao.normalizacao import converter_numero

log = logging.getLogger(__name__)

Pedido = dict[str, Any]
Waypoint = dict[str, Any]

AGRUPAMENTOS: tuple[str, ...] = ("Rota", "Cliente", "Nr Pedido")

ID_PARTIDA: str = str(PONTO_PARTIDA["id"])


# ===========================================================================
# Pedidos: enriquecimento, filtros e agrupamento
# ===========================================================================


def enriquecer_pedidos(registros: Iterable[Pedido]) -> list[Pedido]:
    """Mescla ``raw_data`` de cada pedido com id, coordenadas, CEP e flags."""
    return [
        {
            **(registro.get("raw_data") or {}),
            "id": registro.get("id"),
            "customer_short_name": registro.get("customer_short_name"),
            "cep": registro.get("cep"),
            "rota_normalizada": registro.get("rota_normalizada"),
            "lat": registro.get("lat"),
            "lon": registro.get("lon"),
            "geocoded": registro.get("geocoded"),
        }
        for registro in registros
    ]


def _contem(valor: object, termo: str) -> bool:
    if not termo:
        return True
    if valor is None or valor == "":
        return False
    return termo.lower() in str(valor).lower()


def _data_formatada(valor: object) -> str | None:
    """Data ISO (ou ``datetime``) em ``dd/mm/aaaa``; ``None`` se inválida."""
    if isinstance(valor, datetime):
        return valor.strftime("%d/%m/%Y")
    if not valor:
        return None
    try:
        return datetime.fromisoformat(str(valor)).strftime("%d/%m/%Y")
    except ValueError:
        return None


def filtrar_pedidos(
    pedidos: Iterable[Pedido],
    cliente: str = "",
    nr_pedido: str = "",
    data_entrega: str = "",
    rota: str = "",
    produzido_positivo: bool = False,
    embalado_positivo: bool = False,
) -> list[Pedido]:
    """Filtra pedidos enriquecidos.

    Filtros de texto são *substring* sem diferenciar caixa; ``data_entrega``
    é comparado com a data formatada em ``dd/mm/aaaa``.  Os filtros booleanos
    exigem ``Produzido Kg``/``Embalado Kg`` maiores que zero.
    """
    resultado: list[Pedido] = []
    for pedido in pedidos:
        if not _contem(pedido.get("Cliente"), cliente):
            continue
        if not _contem(pedido.get("Nr Pedido"), nr_pedido):
            continue
        if data_entrega:
            formatada = _data_formatada(pedido.get("Data Entrega"))
            if formatada is None or data_entrega not in formatada:
                continue
        if not _contem(pedido.get("Rota"), rota):
            continue
        if produzido_positivo and converter_numero(pedido.get("Produzido Kg")) <= 0:
            continue
        if embalado_positivo and converter_numero(pedido.get("Embalado Kg")) <= 0:
            continue
        resultado.append(pedido)
    return resultado


def chave_grupo(pedido: Pedido, por: str = "Rota") -> str:
    """Chave do grupo do pedido; as partes são codificadas como URL.

    ``Rota`` agrupa por cliente + rota (``rota::<cliente>::<rota>``).
    """
    cliente = str(pedido.get("Cliente") or "").strip() or "Cliente não informado"
    rota = str(pedido.get("Rota") or "").strip() or "Rota não informada"
    nr_pedido = str(pedido.get("Nr Pedido") or "").strip() or "Pedido sem número"

    if por == "Cliente":
        return "::".join(("cliente", quote(cliente, safe="")))
    if por == "Nr Pedido":
        return "::".join(("pedido", quote(nr_pedido, safe="")))
    return "::".join(("rota", quote(cliente, safe=""), quote(rota, safe="")))


def agrupar_pedidos(pedidos: Iterable[Pedido], por: str = "Rota") -> dict[str, list[Pedido]]:
    """Agrupa pedidos por ``Rota``, ``Cliente`` ou ``Nr Pedido``.

    Raises:
        ValueError: Se *por* não for um agrupamento suportado.
    """
    if por not in AGRUPAMENTOS:
        raise ValueError(
            f"Agrupamento inválido: '{por}'. Opções: {', '.join(AGRUPAMENTOS)}"
        )
    grupos: dict[str, list[Pedido]] = {}
    for pedido in pedidos:
        grupos.setdefault(chave_grupo(pedido, por), []).append(pedido)
    return grupos


def totais_selecionados(
    grupos: dict[str, list[Pedido]],
    selecionados: Iterable[str],
    excluidos: Iterable[str] = (),
) -> dict[str, float]:
    """Soma ``Produzido Kg`` e ``Embalado Kg`` dos grupos selecionados."""
    excluidos = set(excluidos)
    totais = {"produzido_kg": 0.0, "embalado_kg": 0.0}
    for chave in selecionados:
        for pedido in grupos.get(chave, []):
            if pedido.get("id") in excluidos:
                continue
            totais["produzido_kg"] += converter_numero(pedido.get("Produzido Kg"))
            totais["embalado_kg"] += converter_numero(pedido.get("Embalado Kg"))
    return totais


def pontos_de_entrega(
    pedidos: Iterable[Pedido], excluidos: Iterable[str] = ()
) -> list[Waypoint]:
    """Agrega pedidos geocodificados em um ponto por coordenada (6 casas).

    Args:
        pedidos:   Pedidos enriquecidos selecionados.
        excluidos: Ids de pedidos desmarcados.

    Returns:
        Pontos com ``lat``, ``lon``, ``endereco``, ``pedidos``,
        ``produzido_total`` e ``embalado_total`` (sem ``id``/``ordem``).

    Raises:
        ValueError: Se nenhum pedido ativo tiver coordenadas.
    """
    excluidos = set(excluidos)
    por_coordenada: dict[str, Waypoint] = {}

    for pedido in pedidos:
        if pedido.get("id") is not None and pedido.get("id") in excluidos:
            continue
        lat, lon = pedido.get("lat"), pedido.get("lon")
        if lat is None or lon is None:
            continue

        chave = f"{float(lat):.6f},{float(lon):.6f}"
        produzido = converter_numero(pedido.get("Produzido Kg"))
        embalado = converter_numero(pedido.get("Embalado Kg"))

        if chave in por_coordenada:
            ponto = por_coordenada[chave]
            ponto["pedidos"].append(pedido)
            ponto["produzido_total"] += produzido
            ponto["embalado_total"] += embalado
        else:
            por_coordenada[chave] = {
                "lat": float(lat),
                "lon": float(lon),
                "endereco": pedido.get("Cidade Entrega")
                or pedido.get("Cliente")
                or "Endereço desconhecido",
                "pedidos": [pedido],
                "produzido_total": produzido,
                "embalado_total": embalado,
            }

    if not por_coordenada:
        raise ValueError("Nenhum pedido selecionado possui coordenadas.")

    log.info("  %d ponto(s) de entrega gerado(s)", len(por_coordenada))
    return list(por_coordenada.values())


# ===========================================================================
# Lista de pontos da rota
# ===========================================================================


def _renumerar(pontos: list[Waypoint]) -> list[Waypoint]:
    return [{**ponto, "ordem": i} for i, ponto in enumerate(pontos)]


def _chave_coordenada(ponto: Waypoint) -> str:
    return f"{float(ponto['lat']):.6f},{float(ponto['lon']):.6f}"


def _novo_id() -> str:
    return f"wp-{uuid.uuid4().hex[:12]}"


def criar_lista_pontos() -> list[Waypoint]:
    """Lista inicial contendo só o ponto de partida."""
    return [dict(PONTO_PARTIDA)]


def garantir_partida(pontos: list[Waypoint]) -> list[Waypoint]:
    """Insere ou move o ponto de partida para o início e renumera."""
    outros = [p for p in pontos if p.get("id") != ID_PARTIDA]
    partida = next((p for p in pontos if p.get("id") == ID_PARTIDA), dict(PONTO_PARTIDA))
    return _renumerar([partida] + outros)


def adicionar_ponto(
    pontos: list[Waypoint], lat: float, lon: float, endereco: str
) -> list[Waypoint]:
    """Adiciona um ponto avulso ao final."""
    novo = {"id": _novo_id(), "lat": lat, "lon": lon, "endereco": endereco}
    return _renumerar(list(pontos) + [novo])


def adicionar_pontos(pontos: list[Waypoint], novos: Iterable[Waypoint]) -> list[Waypoint]:
    """Adiciona pontos em lote, ignorando coordenadas já presentes (6 casas)."""
    existentes = {_chave_coordenada(p) for p in pontos}
    adicionados: list[Waypoint] = []
    for ponto in novos:
        chave = _chave_coordenada(ponto)
        if chave in existentes:
            continue
        existentes.add(chave)
        adicionados.append({**ponto, "id": _novo_id()})
    if adicionados:
        log.info("  %d ponto(s) adicionado(s) à rota", len(adicionados))
    return _renumerar(list(pontos) + adicionados)


def remover_ponto(pontos: list[Waypoint], id_: str) -> list[Waypoint]:
    """Remove o ponto *id_*; o ponto de partida é preservado."""
    if id_ == ID_PARTIDA:
        return _renumerar(list(pontos))
    return _renumerar([p for p in pontos if p.get("id") != id_])


def limpar_pontos() -> list[Waypoint]:
    return criar_lista_pontos()


def reordenar_pontos(pontos: list[Waypoint], origem: int, destino: int) -> list[Waypoint]:
    """Move um ponto entre as paradas (índices contados após a partida).

    Raises:
        IndexError: Se *origem* não for uma parada válida.
    """
    partida, paradas = pontos[0], list(pontos[1:])
    if not 0 <= origem < len(paradas):
        raise IndexError(f"Parada inexistente: {origem}")
    movido = paradas.pop(origem)
    paradas.insert(max(0, destino), movido)
    return _renumerar([partida] + paradas)


# ===========================================================================
# Métricas
# ===========================================================================


def metricas_da_rota(opcao: dict[str, Any], pontos: list[Waypoint]) -> dict[str, Any]:
    """Métricas da rota escolhida: distância, duração, pontos, pedidos e pesos."""
    pedidos = [pedido for ponto in pontos for pedido in ponto.get("pedidos") or []]
    return {
        "distancia_total": opcao.get("distancia_total", 0.0),
        "duracao_total": opcao.get("duracao_total", 0.0),
        "total_pontos": len(pontos),
        "total_pedidos": len(pedidos),
        "produzido_kg": sum(converter_numero(p.get("Produzido Kg")) for p in pedidos),
        "embalado_kg": sum(converter_numero(p.get("Embalado Kg")) for p in pedidos),
    }
