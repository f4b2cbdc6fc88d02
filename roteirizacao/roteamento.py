"""
Cálculo e otimização de rotas via OpenRouteService, com fallback no OSRM.

- :func:`calcular_rotas` — até três opções (mais rápida, mais curta,
  recomendada) no ORS; sem chave ou com falha total, até três rotas do OSRM
  (principal + alternativas).
- :func:`otimizar_rota` — reordena as paradas (ORS ``/optimization`` ou OSRM
  ``trip``) mantendo o ponto de partida e calcula as rotas na nova ordem.
- :func:`calcular_rota` — rota única, ORS e depois OSRM.

Distâncias em km, durações em minutos, geometria em ``[lat, lon]``.
"""

import logging
from typing import Any

import requests

from roteirizacao.config import (
    HEADERS,
    HTTP_TIMEOUT,
    ORS_DIRECTIONS_URL,
    ORS_OPTIMIZATION_URL,
    OSRM_BASE_URL,
    ors_api_key,
)

log = logging.getLogger(__name__)

Waypoint = dict[str, Any]
OpcaoRota = dict[str, Any]

#: Preferências do ORS na ordem de apresentação: (id, nome, descrição)
PREFERENCIAS_ORS: tuple[tuple[str, str, str], ...] = (
    ("fastest", "Rota Mais Rápida", "Prioriza velocidade e tempo de viagem"),
    ("shortest", "Rota Mais Curta", "Menor distância percorrida"),
    ("recommended", "Rota Recomendada", "Equilíbrio entre distância e tempo"),
)

#: Máximo de opções aproveitadas da resposta do OSRM
MAX_OPCOES_OSRM = 3


def _chave(api_key: str | None) -> str:
    return ors_api_key() if api_key is None else api_key


def _cabecalhos_ors(api_key: str) -> dict[str, str]:
    return {**HEADERS, "Content-Type": "application/json", "Authorization": api_key}


def _coordenadas_osrm(waypoints: list[Waypoint]) -> str:
    return ";".join(f"{wp['lon']},{wp['lat']}" for wp in waypoints)


def _geometria_lat_lon(coordenadas: list[list[float]]) -> list[list[float]]:
    return [[lat, lon] for lon, lat, *_ in coordenadas]


# ===========================================================================
# OpenRouteService
# ===========================================================================


def _requisitar_direcoes_ors(
    waypoints: list[Waypoint], api_key: str, preferencia: str | None = None
) -> dict[str, Any]:
    corpo: dict[str, Any] = {
        "coordinates": [[wp["lon"], wp["lat"]] for wp in waypoints],
        "instructions": True,
        "units": "km",
    }
    if preferencia:
        corpo["preference"] = preferencia
    resp = requests.post(
        ORS_DIRECTIONS_URL,
        json=corpo,
        headers=_cabecalhos_ors(api_key),
        timeout=HTTP_TIMEOUT,
    )
    resp.raise_for_status()
    return resp.json()


def _opcao_ors(dados: dict[str, Any], id_: str, nome: str, descricao: str) -> OpcaoRota:
    """Converte a resposta GeoJSON do ORS (``units=km``) em opção de rota."""
    feature = dados["features"][0]
    props = feature["properties"]
    resumo = props.get("summary") or {}
    return {
        "id": id_,
        "nome": nome,
        "descricao": descricao,
        "distancia_total": float(resumo.get("distance", 0.0)),
        "duracao_total": float(resumo.get("duration", 0.0)) / 60,
        "geometria": _geometria_lat_lon(feature["geometry"]["coordinates"]),
        "segmentos": [
            {
                "distancia": float(seg.get("distance", 0.0)),
                "duracao": float(seg.get("duration", 0.0)) / 60,
                "passos": [
                    {
                        "instrucao": passo.get("instruction", ""),
                        "distancia": float(passo.get("distance", 0.0)),
                        "duracao": float(passo.get("duration", 0.0)) / 60,
                    }
                    for passo in seg.get("steps", [])
                ],
            }
            for seg in props.get("segments", [])
        ],
    }


def _rota_ors(
    waypoints: list[Waypoint], api_key: str, preferencia: str, nome: str, descricao: str
) -> OpcaoRota | None:
    try:
        dados = _requisitar_direcoes_ors(waypoints, api_key, preferencia)
        return _opcao_ors(dados, preferencia, nome, descricao)
    except requests.RequestException as exc:
        log.warning("  ORS falhou para a preferência '%s': %s", preferencia, exc)
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        log.warning("  Resposta inválida do ORS para '%s': %s", preferencia, exc)
    return None


# ===========================================================================
# OSRM
# ===========================================================================


def _opcao_osrm(rota: dict[str, Any], indice: int) -> OpcaoRota:
    """Converte uma rota do OSRM (metros/segundos) em opção de rota."""
    return {
        "id": f"osrm-{indice}",
        "nome": "Rota Principal (OSRM)" if indice == 0 else f"Rota Alternativa {indice} (OSRM)",
        "descricao": "Rota recomendada pelo OSRM" if indice == 0 else f"Opção alternativa {indice}",
        "distancia_total": float(rota.get("distance", 0.0)) / 1000,
        "duracao_total": float(rota.get("duration", 0.0)) / 60,
        "geometria": _geometria_lat_lon(rota["geometry"]["coordinates"]),
        "segmentos": [
            {
                "distancia": float(leg.get("distance", 0.0)) / 1000,
                "duracao": float(leg.get("duration", 0.0)) / 60,
                "passos": [
                    {
                        "instrucao": (passo.get("maneuver") or {}).get("instruction") or "Continue",
                        "distancia": float(passo.get("distance", 0.0)) / 1000,
                        "duracao": float(passo.get("duration", 0.0)) / 60,
                    }
                    for passo in leg.get("steps", [])
                ],
            }
            for leg in rota.get("legs", [])
        ],
    }


def _rotas_osrm(waypoints: list[Waypoint], alternativas: bool = True) -> list[OpcaoRota]:
    url = f"{OSRM_BASE_URL}/route/v1/driving/{_coordenadas_osrm(waypoints)}"
    params: dict[str, Any] = {"overview": "full", "geometries": "geojson", "steps": "true"}
    if alternativas:
        params["alternatives"] = 2
    try:
        resp = requests.get(url, params=params, headers=HEADERS, timeout=HTTP_TIMEOUT)
        resp.raise_for_status()
        rotas = resp.json().get("routes") or []
        return [_opcao_osrm(r, i) for i, r in enumerate(rotas[:MAX_OPCOES_OSRM])]
    except requests.RequestException as exc:
        log.error("  OSRM falhou: %s", exc)
    except (KeyError, TypeError, ValueError) as exc:
        log.error("  Resposta inválida do OSRM: %s", exc)
    return []


def _resultado_osrm(waypoints: list[Waypoint]) -> dict[str, Any] | None:
    rotas = _rotas_osrm(waypoints)
    if not rotas:
        return None
    return {"waypoints": list(waypoints), "rotas": rotas, "usou_fallback": True}


# ===========================================================================
# API pública
# ===========================================================================


def calcular_rotas(
    waypoints: list[Waypoint], api_key: str | None = None
) -> dict[str, Any] | None:
    """Calcula opções de rota passando pelos waypoints na ordem dada.

    Args:
        waypoints: Pontos com ``lat``/``lon`` (o primeiro é a partida).
        api_key:   Chave do ORS; ``None`` lê ``ORS_API_KEY``.

    Returns:
        ``{"waypoints", "rotas", "usou_fallback"}`` ou ``None`` com menos de 2
        pontos ou quando nenhum serviço respondeu.
    """
    if len(waypoints) < 2:
        return None

    log.info("[ROTA] Calculando rotas para %d ponto(s)...", len(waypoints))
    chave = _chave(api_key)
    if not chave:
        log.warning("  ORS_API_KEY ausente: usando OSRM")
        return _resultado_osrm(waypoints)

    rotas: list[OpcaoRota] = []
    for preferencia, nome, descricao in PREFERENCIAS_ORS:
        opcao = _rota_ors(waypoints, chave, preferencia, nome, descricao)
        if opcao:
            rotas.append(opcao)
    if not rotas:
        log.warning("  Nenhuma rota do ORS: usando OSRM")
        return _resultado_osrm(waypoints)

    return {"waypoints": list(waypoints), "rotas": rotas, "usou_fallback": False}


def _ordem_ors(waypoints: list[Waypoint], api_key: str) -> list[Waypoint]:
    partida, destinos = waypoints[0], waypoints[1:]
    corpo = {
        "jobs": [
            {"id": i, "location": [wp["lon"], wp["lat"]]} for i, wp in enumerate(destinos)
        ],
        "vehicles": [
            {
                "id": 1,
                "profile": "driving-car",
                "start": [partida["lon"], partida["lat"]],
                "end": [partida["lon"], partida["lat"]],
            }
        ],
    }
    resp = requests.post(
        ORS_OPTIMIZATION_URL,
        json=corpo,
        headers=_cabecalhos_ors(api_key),
        timeout=HTTP_TIMEOUT,
    )
    resp.raise_for_status()
    passos = resp.json()["routes"][0]["steps"]
    ordem = [p["job"] for p in passos if p.get("type") == "job"]
    # jobs em "unassigned" não aparecem nos passos; vão para o fim da rota
    faltantes = [i for i in range(len(destinos)) if i not in ordem]
    if faltantes:
        log.warning(
            "  ORS não alocou %d parada(s); mantidas no fim da rota", len(faltantes)
        )
    return [partida] + [destinos[i] for i in ordem + faltantes]


def _ordem_osrm(waypoints: list[Waypoint]) -> list[Waypoint]:
    """Ordem do OSRM ``trip``; a original se o serviço falhar.

    ``waypoints[i].waypoint_index`` é a posição do ponto de entrada ``i`` na
    viagem, então a nova ordem é a dos índices de entrada ordenados por ela.
    """
    url = f"{OSRM_BASE_URL}/trip/v1/driving/{_coordenadas_osrm(waypoints)}"
    params = {"source": "first", "destination": "last", "roundtrip": "false"}
    try:
        resp = requests.get(url, params=params, headers=HEADERS, timeout=HTTP_TIMEOUT)
        resp.raise_for_status()
        dados = resp.json()
    except (requests.RequestException, ValueError) as exc:
        log.error("  Otimização OSRM falhou: %s", exc)
        return list(waypoints)

    if dados.get("code") != "Ok":
        log.error("  Otimização OSRM falhou: %s", dados.get("code"))
        return list(waypoints)

    posicoes = [wp["waypoint_index"] for wp in dados.get("waypoints", [])]
    if sorted(posicoes) != list(range(len(waypoints))):
        log.error("  Resposta do OSRM trip inconsistente; mantendo ordem original")
        return list(waypoints)
    return [waypoints[i] for i in sorted(range(len(waypoints)), key=posicoes.__getitem__)]


def otimizar_rota(
    waypoints: list[Waypoint], api_key: str | None = None
) -> dict[str, Any] | None:
    """Otimiza a ordem de visita e calcula as rotas na nova ordem.

    O primeiro waypoint (partida) permanece no início.  Sem chave do ORS, ou
    se a otimização do ORS falhar, usa o OSRM ``trip``; se este também falhar,
    mantém a ordem original.
    """
    if len(waypoints) < 2:
        return None

    log.info("[ROTA] Otimizando ordem de %d parada(s)...", len(waypoints) - 1)
    chave = _chave(api_key)
    otimizados: list[Waypoint]
    if chave:
        try:
            otimizados = _ordem_ors(waypoints, chave)
        except (requests.RequestException, KeyError, IndexError, TypeError, ValueError) as exc:
            log.warning("  Otimização ORS falhou (%s). Usando OSRM.", exc)
            otimizados = _ordem_osrm(waypoints)
    else:
        otimizados = _ordem_osrm(waypoints)

    return calcular_rotas(otimizados, api_key=chave)


def calcular_rota(
    waypoints: list[Waypoint], api_key: str | None = None
) -> dict[str, Any] | None:
    """Rota única (sem preferência) no ORS; OSRM se não houver chave ou falhar.

    Returns:
        ``{"waypoints", "distancia_total", "duracao_total", "geometria",
        "segmentos"}`` ou ``None``.
    """
    if len(waypoints) < 2:
        return None

    chave = _chave(api_key)
    opcao: OpcaoRota | None = None
    if chave:
        try:
            dados = _requisitar_direcoes_ors(waypoints, chave)
            opcao = _opcao_ors(dados, "ors", "", "")
        except (requests.RequestException, KeyError, IndexError, TypeError, ValueError) as exc:
            log.warning("  ORS falhou (%s). Usando OSRM.", exc)

    if opcao is None:
        rotas = _rotas_osrm(waypoints, alternativas=False)
        if not rotas:
            return None
        opcao = rotas[0]

    return {
        "waypoints": list(waypoints),
        "distancia_total": opcao["distancia_total"],
        "duracao_total": opcao["duracao_total"],
        "geometria": opcao["geometria"],
        "segmentos": opcao["segmentos"],
    }
