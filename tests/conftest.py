"""
conftest.py — Fixtures e configurações globais para os testes.

Aplicado automaticamente a todos os módulos de teste (autouse=True):
- tqdm substituído por iteração direta (sem saída de progresso nos testes).
- Credenciais de ORS e Supabase removidas do ambiente (backend local, sem
  chamadas externas não simuladas).
"""

from pathlib import Path

import pytest

from roteirizacao.armazenamento import RepositorioLocal


@pytest.fixture(autouse=True)
def desabilitar_tqdm(monkeypatch: pytest.MonkeyPatch) -> None:
    """Substitui tqdm por passthrough para suprimir barras de progresso."""
    monkeypatch.setattr(
        "roteirizacao.geocodificacao.tqdm",
        lambda iterable, **kw: iterable,
    )


@pytest.fixture(autouse=True)
def sem_credenciais(monkeypatch: pytest.MonkeyPatch) -> None:
    """Garante backend local e ORS desativado, salvo quando o teste define."""
    for var in ("ORS_API_KEY", "SUPABASE_URL", "SUPABASE_KEY"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def repo(tmp_path: Path) -> RepositorioLocal:
    """Repositório local isolado em diretório temporário."""
    return RepositorioLocal(tmp_path)
