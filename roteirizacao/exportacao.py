"""
Relatório Excel da rota (uma aba: resumo + detalhes das entregas).
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.utils import get_column_letter

from roteirizacao.config import SAIDA_DIR

log = logging.getLogger(__name__)

ABA_RELATORIO = "Relatório de Rota"

CABECALHO_ENTREGAS: tuple[str, ...] = (
    "Parada",
    "Cliente",
    "Cidade",
    "Endereço",
    "Embalado (Kg)",
    "Embalado (Pc)",
    "Nr Pedido",
)

#: Largura (em caracteres) de cada coluna da tabela de entregas
LARGURAS_COLUNAS: tuple[int, ...] = (10, 30, 20, 40, 15, 15, 15)


def nome_arquivo_relatorio(nome_rota: str, data: datetime | None = None) -> str:
    """``Relatorio_Rota_<nome com _>_<aaaammdd>.xlsx``."""
    data = data or datetime.now()
    return f"Relatorio_Rota_{nome_rota.replace(' ', '_')}_{data:%Y%m%d}.xlsx"


def linhas_resumo(
    nome_rota: str, opcao: dict[str, Any], pontos: list[dict[str, Any]], data: datetime
) -> list[list[Any]]:
    """Bloco de resumo; o número de paradas não conta o ponto de partida."""
    return [
        ["Relatório de Rota"],
        [],
        ["Nome da Rota", nome_rota],
        ["Data de Exportação", data.strftime("%d/%m/%Y %H:%M")],
        ["Distância Total", f"{float(opcao.get('distancia_total', 0.0)):.2f} km"],
        ["Duração Total", f"{round(float(opcao.get('duracao_total', 0.0)))} min"],
        ["Número de Paradas", max(len(pontos) - 1, 0)],
        [],
        ["Detalhes das Entregas"],
    ]


def linhas_entregas(pontos: list[dict[str, Any]]) -> list[list[Any]]:
    """Uma linha por pedido de cada parada; parada sem pedidos vira uma linha."""
    linhas: list[list[Any]] = []
    for parada, ponto in enumerate(pontos[1:], start=1):
        pedidos = ponto.get("pedidos") or []
        if not pedidos:
            endereco = ponto.get("endereco", "")
            linhas.append([parada, endereco, "", endereco, "", "", "N/A"])
            continue
        for pedido in pedidos:
            linhas.append(
                [
                    parada,
                    pedido.get("Cliente"),
                    pedido.get("Cidade Entrega"),
                    pedido.get("Local Entrega"),
                    pedido.get("Embalado Kg"),
                    pedido.get("Embalado Pc"),
                    pedido.get("Nr Pedido"),
                ]
            )
    return linhas


def exportar_rota_excel(
    nome_rota: str,
    opcao: dict[str, Any],
    pontos: list[dict[str, Any]],
    destino: Path = SAIDA_DIR,
    data: datetime | None = None,
) -> Path:
    """Gera o relatório Excel da rota em *destino*.

    Args:
        nome_rota: Nome dado à rota.
        opcao:     Opção de rota escolhida (distância/duração).
        pontos:    Waypoints na ordem da rota (o primeiro é a partida).
        destino:   Diretório de saída; criado se não existir.
        data:      Data de exportação (padrão: agora).

    Returns:
        :class:`~pathlib.Path` do arquivo gerado.
    """
    data = data or datetime.now()
    destino.mkdir(parents=True, exist_ok=True)
    saida = destino / nome_arquivo_relatorio(nome_rota, data)

    resumo = linhas_resumo(nome_rota, opcao, pontos, data)
    entregas = pd.DataFrame(linhas_entregas(pontos), columns=list(CABECALHO_ENTREGAS))

    with pd.ExcelWriter(saida, engine="openpyxl") as writer:
        pd.DataFrame(resumo).to_excel(
            writer, sheet_name=ABA_RELATORIO, header=False, index=False
        )
        entregas.to_excel(
            writer, sheet_name=ABA_RELATORIO, startrow=len(resumo), index=False
        )
        planilha = writer.sheets[ABA_RELATORIO]
        for indice, largura in enumerate(LARGURAS_COLUNAS, start=1):
            planilha.column_dimensions[get_column_letter(indice)].width = largura

    log.info("  Relatório salvo: %s (%d linha(s) de entrega)", saida, len(entregas))
    return saida
