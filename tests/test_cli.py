"""
Testes para roteirizacao.cli.

Cobre:
- status sem dados: arquivos 'ausente' e contagens zeradas
- importar + status: contagens e arquivos 'ok'
- importar sem arquivos: código de erro 1
- rota: pedidos geocodificados → rota calculada, salva, Excel e mapa gerados
- rota sem pedidos com coordenadas: código de erro 1
- rotas: listagem e remoção
- transportadora: cliente inexistente e dados inválidos
- limpar --tudo sem --confirmar: recusado
"""

from pathlib import Path
from unittest.mock import patch

import pandas as pd
import pytest

from roteirizacao.armazenamento import RepositorioLocal
from roteirizacao.cli import (
    _build_parser,
    cmd_importar,
    cmd_limpar,
    cmd_rota,
    cmd_rotas,
    cmd_status,
    cmd_transportadora,
)


def _args(tmp_path: Path, *argv: str):
    return _build_parser().parse_args(["--destino", str(tmp_path), *argv])


def _popular(tmp_path: Path) -> None:
    """Um cliente geocodificado com dois pedidos no mesmo ponto e um sem coordenadas."""
    repo = RepositorioLocal(tmp_path)
    repo.inserir_clientes(
        [{"short_name": "ACME", "geocoded": True, "lat": -22.9, "lon": -47.06}]
    )
    repo.inserir_pedidos(
        [
            {
                "customer_short_name": "ACME",
                "cliente": "ACME",
                "lat": -22.9,
                "lon": -47.06,
                "geocoded": True,
                "raw_data": {
                    "Cliente": "ACME",
                    "Rota": "ROTA 1",
                    "Nr Pedido": nr,
                    "Cidade Entrega": "CAMPINAS - SP",
                    "Embalado Kg": "5",
                },
            }
            for nr in ("1001", "1002")
        ]
        + [
            {
                "customer_short_name": "ACME",
                "cliente": "ACME",
                "geocoded": False,
                "raw_data": {"Cliente": "ACME", "Rota": "ROTA 2", "Nr Pedido": "1003"},
            }
        ]
    )
    repo.persistir()


def _resultado_rota(waypoints: list[dict]) -> dict:
    return {
        "waypoints": waypoints,
        "rotas": [
            {
                "id": "osrm-0",
                "nome": "Rota Principal (OSRM)",
                "distancia_total": 12.5,
                "duracao_total": 30.0,
                "geometria": [[w["lat"], w["lon"]] for w in waypoints],
                "segmentos": [],
            }
        ],
        "usou_fallback": True,
    }


# ===========================================================================
# status
# ===========================================================================


def test_status_sem_dados_exibe_ausente(
    tmp_path: Path, capsys: pytest.CaptureFixture
) -> None:
    rc = cmd_status(_args(tmp_path, "status"))

    assert rc == 0
    saida = capsys.readouterr().out
    assert saida.count("ausente") == 4
    assert "Clientes" in saida


def test_importar_e_status(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    clientes = tmp_path / "clientes.xlsx"
    pd.DataFrame([{"Nome Abreviado": "ACME", "Nome": "ACME LTDA", "CEP": "13010-000"}]).to_excel(
        clientes, index=False
    )

    assert cmd_importar(_args(tmp_path, "importar", "--clientes", str(clientes))) == 0
    assert "Clientes importados: 1" in capsys.readouterr().out

    assert cmd_status(_args(tmp_path, "status")) == 0
    saida = capsys.readouterr().out
    assert "clientes.json" in saida
    assert "ok" in saida


def test_importar_sem_arquivos_retorna_erro(tmp_path: Path) -> None:
    assert cmd_importar(_args(tmp_path, "importar")) == 1


# ===========================================================================
# rota / rotas
# ===========================================================================


def test_rota_calcula_salva_e_exporta(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    _popular(tmp_path)
    saida = tmp_path / "saida"
    mapa = tmp_path / "saida" / "rota.html"

    with patch(
        "roteirizacao.roteamento.calcular_rotas",
        side_effect=lambda pontos: _resultado_rota(pontos),
    ) as mock_calc:
        rc = cmd_rota(
            _args(
                tmp_path,
                "rota",
                "--nome",
                "Rota Teste",
                "--salvar",
                "--saida",
                str(saida),
                "--mapa",
                str(mapa),
            )
        )

    assert rc == 0
    pontos = mock_calc.call_args.args[0]
    assert [p["id"] for p in pontos][0] == "company-start"
    assert len(pontos) == 2
    assert len(pontos[1]["pedidos"]) == 2

    assert mapa.exists()
    assert list(saida.glob("Relatorio_Rota_Rota_Teste_*.xlsx"))
    [salva] = RepositorioLocal(tmp_path).listar_rotas()
    assert salva["nome"] == "Rota Teste"
    assert salva["metricas"]["total_pedidos"] == 2
    assert "Rota Principal (OSRM)" in capsys.readouterr().out


def test_rota_sem_coordenadas_retorna_erro(tmp_path: Path) -> None:
    _popular(tmp_path)
    with patch("roteirizacao.roteamento.calcular_rotas") as mock_calc:
        rc = cmd_rota(_args(tmp_path, "rota", "--rota", "ROTA 2"))

    assert rc == 1
    mock_calc.assert_not_called()


def test_rota_listar_grupos(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    _popular(tmp_path)
    rc = cmd_rota(_args(tmp_path, "rota", "--agrupar-por", "Cliente", "--listar-grupos"))

    assert rc == 0
    saida = capsys.readouterr().out
    assert "ACME" in saida
    assert "embalado 10,00 kg" in saida


def test_rota_grupo_inexistente(tmp_path: Path) -> None:
    _popular(tmp_path)
    assert cmd_rota(_args(tmp_path, "rota", "--grupo", "rota::X::Y")) == 1


def test_rotas_lista_e_remove(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    repo = RepositorioLocal(tmp_path)
    salva = repo.salvar_rota("Rota A", {}, [{"id": "company-start"}], {"distancia_total": 3})
    repo.persistir()

    assert cmd_rotas(_args(tmp_path, "rotas")) == 0
    assert "Rota A" in capsys.readouterr().out

    assert cmd_rotas(_args(tmp_path, "rotas", "--remover", salva["id"])) == 0
    assert RepositorioLocal(tmp_path).listar_rotas() == []
    assert cmd_rotas(_args(tmp_path, "rotas", "--remover", salva["id"])) == 1


# ===========================================================================
# transportadora / limpar
# ===========================================================================


def test_transportadora_cliente_inexistente(tmp_path: Path) -> None:
    assert cmd_transportadora(_args(tmp_path, "transportadora", "NINGUEM")) == 1


def test_transportadora_dados_invalidos(tmp_path: Path) -> None:
    _popular(tmp_path)
    rc = cmd_transportadora(
        _args(tmp_path, "transportadora", "acme", "--uf", "S", "--sem-geocodificar")
    )
    assert rc == 1


def test_transportadora_salva_sem_geocodificar(tmp_path: Path) -> None:
    _popular(tmp_path)
    rc = cmd_transportadora(
        _args(
            tmp_path,
            "transportadora",
            "acme",
            "--endereco",
            "Rua C, 1",
            "--cidade",
            "Sumaré",
            "--uf",
            "SP",
            "--sem-geocodificar",
        )
    )

    assert rc == 0
    [cliente] = RepositorioLocal(tmp_path).listar_clientes()
    assert cliente["use_transportadora"] is True
    assert cliente["transportadora_city"] == "Sumaré"


def test_limpar_tudo_exige_confirmacao(tmp_path: Path) -> None:
    _popular(tmp_path)
    assert cmd_limpar(_args(tmp_path, "limpar", "--tudo")) == 1
    assert len(RepositorioLocal(tmp_path).listar_clientes()) == 1


def test_limpar_pedidos(tmp_path: Path) -> None:
    _popular(tmp_path)
    assert cmd_limpar(_args(tmp_path, "limpar", "--pedidos")) == 0
    repo = RepositorioLocal(tmp_path)
    assert repo.listar_pedidos() == []
    assert len(repo.listar_clientes()) == 1
