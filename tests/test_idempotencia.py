"""
Testes de idempotência da geocodificação com cache persistido.

Cobre:
- Resultado idêntico após reimportação (cache em disco supre o provedor)
- Cache não duplica entradas após reexecuções sucessivas
- Falha explícita gravada uma vez e reaproveitada entre execuções
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pandas as pd

from roteirizacao.armazenamento import RepositorioLocal
from roteirizacao.geocodificacao import geocodificar_pendentes


# ===========================================================================
# Helpers
# ===========================================================================


def _loc(lat: float, lon: float) -> MagicMock:
    """Cria um mock de localização com latitude/longitude."""
    loc = MagicMock()
    loc.latitude = lat
    loc.longitude = lon
    return loc


def _reimportar(diretorio: Path, clientes: list[dict]) -> None:
    """Simula uma reimportação: clientes voltam a ficar pendentes."""
    repo = RepositorioLocal(diretorio)
    repo.limpar_clientes()
    repo.inserir_clientes([dict(c, geocoded=False, lat=None, lon=None) for c in clientes])
    repo.persistir()


def _executar(diretorio: Path, resposta: object) -> dict:
    """Executa geocodificar_pendentes em um repositório novo (novo processo)."""
    with (
        patch("roteirizacao.geocodificacao.Nominatim"),
        patch("roteirizacao.geocodificacao.RateLimiter") as mock_rl,
    ):
        if isinstance(resposta, list):
            mock_rl.return_value.side_effect = resposta
        else:
            mock_rl.return_value.return_value = resposta
        return geocodificar_pendentes(RepositorioLocal(diretorio))


CLIENTES = [
    {"short_name": "ALFA", "address": "RUA ALFA, 1", "city": "CAMPINAS", "state": "SP"},
    {"short_name": "BETA", "address": "RUA BETA, 2", "city": "CAMPINAS", "state": "SP"},
]


# ===========================================================================
# Idempotência: resultado idêntico na segunda execução
# ===========================================================================


def test_resultado_identico_apos_reimportacao(tmp_path: Path) -> None:
    """
    A segunda execução usa o cache em disco; mesmo com o provedor
    indisponível (retorna None), as coordenadas são as da primeira.
    """
    _reimportar(tmp_path, CLIENTES[:1])
    _executar(tmp_path, _loc(-22.9, -47.06))
    primeiro = RepositorioLocal(tmp_path).listar_clientes()[0]

    _reimportar(tmp_path, CLIENTES[:1])
    resumo = _executar(tmp_path, None)
    segundo = RepositorioLocal(tmp_path).listar_clientes()[0]

    assert resumo["clientes"]["do_cache"] == 1
    assert (segundo["lat"], segundo["lon"]) == (primeiro["lat"], primeiro["lon"])
    assert segundo["geocoded"] is True


# ===========================================================================
# Idempotência: cache sem duplicatas
# ===========================================================================


def test_cache_nao_duplica_entradas(tmp_path: Path) -> None:
    """Reexecuções com os mesmos clientes não fazem o cache crescer."""
    cache_path = tmp_path / "geocache.csv"

    _reimportar(tmp_path, CLIENTES)
    _executar(tmp_path, [_loc(-22.90, -47.06), _loc(-22.91, -47.07)])
    assert len(pd.read_csv(cache_path)) == 2

    for _ in range(2):
        _reimportar(tmp_path, CLIENTES)
        _executar(tmp_path, None)

    df_cache = pd.read_csv(cache_path, dtype=str, keep_default_na=False)
    assert len(df_cache) == 2, "Cache não deve crescer nas reexecuções"
    assert df_cache["short_name_normalized"].nunique() == 2


def test_falha_gravada_uma_unica_vez(tmp_path: Path) -> None:
    """Endereço sem resultado é gravado como falha e não reconsultado."""
    _reimportar(tmp_path, CLIENTES[:1])
    _executar(tmp_path, None)

    _reimportar(tmp_path, CLIENTES[:1])
    with (
        patch("roteirizacao.geocodificacao.Nominatim"),
        patch("roteirizacao.geocodificacao.RateLimiter") as mock_rl,
    ):
        geocodificar_pendentes(RepositorioLocal(tmp_path))
        mock_rl.return_value.assert_not_called()

    df_cache = pd.read_csv(tmp_path / "geocache.csv", dtype=str, keep_default_na=False)
    assert len(df_cache) == 1
    assert df_cache.loc[0, "provider"] == "nenhum"
    assert df_cache.loc[0, "lat"] == ""
