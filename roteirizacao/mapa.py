"""
Mapa HTML da rota com Folium.

* Marcador distinto para o ponto de partida e marcadores numerados para as
  paradas, com popup de pedidos e pesos em formato pt-BR.
* Linha da rota (geometria ``[lat, lon]`` da opção escolhida).
* Painel de resumo (distância, duração, paradas) injetado no HTML.
"""

import html
import logging
from pathlib import Path
from typing import Any

import folium
from branca.element import Element

from roteirizacao.config import MAPA_HTML, PONTO_PARTIDA
from roteirizacao.normalizacao import formatar_numero

log = logging.getLogger(__name__)

_COR_ROTA = "#2563eb"

_PAINEL_TEMPLATE: str = """\
<div id="rota-resumo" style="position:absolute;top:10px;right:10px;z-index:1001;
background:rgba(255,255,255,.97);border-radius:8px;padding:10px 14px;
box-shadow:0 2px 8px rgba(0,0,0,.2);font-family:Arial;font-size:13px">
<b>__NOME__</b><br>
Distância: __DISTANCIA__ km<br>
Duração: __DURACAO__ min<br>
Paradas: __PARADAS__
</div>
"""


def _popup_parada(numero: int, ponto: dict[str, Any]) -> str:
    pedidos = ponto.get("pedidos") or []
    linhas = [
        '<div style="font-family:Arial;font-size:13px;min-width:200px">',
        f"<b>{numero}. {html.escape(str(ponto.get('endereco', '')))}</b><br>",
    ]
    if pedidos:
        linhas.append(f"<b>Pedidos:</b> {len(pedidos)}<br>")
        linhas.append(
            f"<b>Produzido:</b> {formatar_numero(ponto.get('produzido_total', 0))} kg<br>"
        )
        linhas.append(
            f"<b>Embalado:</b> {formatar_numero(ponto.get('embalado_total', 0))} kg<br>"
        )
        clientes = sorted({str(p.get("Cliente")) for p in pedidos if p.get("Cliente")})
        if clientes:
            linhas.append(f"<i>{html.escape(', '.join(clientes))}</i>")
    linhas.append("</div>")
    return "".join(linhas)


def _painel_resumo(opcao: dict[str, Any], pontos: list[dict[str, Any]]) -> str:
    return (
        _PAINEL_TEMPLATE.replace("__NOME__", html.escape(str(opcao.get("nome", "Rota"))))
        .replace("__DISTANCIA__", formatar_numero(opcao.get("distancia_total", 0)))
        .replace("__DURACAO__", formatar_numero(opcao.get("duracao_total", 0), casas=0))
        .replace("__PARADAS__", str(max(len(pontos) - 1, 0)))
    )


def gerar_mapa_rota(
    pontos: list[dict[str, Any]],
    opcao: dict[str, Any] | None = None,
    output_path: Path = MAPA_HTML,
) -> Path:
    """Gera o mapa HTML da rota.

    Args:
        pontos:      Waypoints na ordem da rota (o primeiro é a partida).
        opcao:       Opção de rota calculada; sem ela só os pontos são
                     desenhados.
        output_path: Arquivo HTML de saída (cria diretórios pai).

    Returns:
        :class:`~pathlib.Path` do HTML gerado.
    """
    log.info("[MAPA] Gerando mapa da rota...")
    output_path.parent.mkdir(parents=True, exist_ok=True)

    centro = (
        [pontos[0]["lat"], pontos[0]["lon"]]
        if pontos
        else [PONTO_PARTIDA["lat"], PONTO_PARTIDA["lon"]]
    )
    mapa = folium.Map(location=centro, zoom_start=11, tiles="CartoDB positron")

    limites: list[list[float]] = []
    for indice, ponto in enumerate(pontos):
        local = [float(ponto["lat"]), float(ponto["lon"])]
        limites.append(local)
        if ponto.get("id") == PONTO_PARTIDA["id"] or indice == 0:
            folium.Marker(
                location=local,
                popup=folium.Popup(html.escape(str(ponto.get("endereco", ""))), max_width=280),
                tooltip="Ponto de partida",
                icon=folium.Icon(color="green", icon="home"),
            ).add_to(mapa)
            continue

        folium.Marker(
            location=local,
            popup=folium.Popup(_popup_parada(indice, ponto), max_width=280),
            tooltip=f"{indice}. {ponto.get('endereco', '')}",
            icon=folium.DivIcon(
                html=(
                    f'<div style="background:{_COR_ROTA};color:#fff;border-radius:50%;'
                    f"width:24px;height:24px;line-height:24px;text-align:center;"
                    f'font:bold 12px Arial">{indice}</div>'
                ),
                icon_size=(24, 24),
                icon_anchor=(12, 12),
            ),
        ).add_to(mapa)

    if opcao and opcao.get("geometria"):
        folium.PolyLine(
            opcao["geometria"],
            color=_COR_ROTA,
            weight=5,
            opacity=0.8,
            tooltip=opcao.get("nome"),
        ).add_to(mapa)
        limites.extend(opcao["geometria"])
        mapa.get_root().html.add_child(Element(_painel_resumo(opcao, pontos)))  # type: ignore[union-attr]

    if len(limites) > 1:
        lats = [p[0] for p in limites]
        lons = [p[1] for p in limites]
        mapa.fit_bounds([[min(lats), min(lons)], [max(lats), max(lons)]])

    mapa.save(str(output_path))
    log.info("  Mapa salvo: %s", output_path)
    return output_path
