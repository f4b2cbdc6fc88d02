"""
Testes para roteirizacao.armazenamento.

Cobre:
- montar_chave_cache: normalização dos componentes
- RepositorioLocal: inserção, persistência, ids ausentes, rotas salvas,
  reset do cache com backup, última entrada do cache vence
- RepositorioSupabase: erros da API, consulta do cache, rollback da rota
- criar_repositorio: escolha do backend pelo ambiente
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from postgrest.exceptions import APIError

from roteirizacao.armazenamento import (
    ErroArmazenamento,
    RepositorioLocal,
    RepositorioSupabase,
    chave_como_registro,
    criar_repositorio,
    montar_chave_cache,
)

CHAVE = ("customer", "ACME", "13010-000", "RUA A, 10", "CAMPINAS", "SP")


def _erro_api(mensagem: str = "falhou") -> APIError:
    return APIError({"message": mensagem, "code": "500", "hint": None, "details": None})


# ===========================================================================
# Chave do cache
# ===========================================================================


class TestChaveCache:
    def test_normaliza_componentes(self) -> None:
        chave = montar_chave_cache(
            " Customer ", " acme ", "13010000", "rua a,  10", "campinas", "sp"
        )
        assert chave == CHAVE

    def test_componentes_ausentes_viram_vazio(self) -> None:
        assert montar_chave_cache("pedido", None) == ("pedido", "", "", "", "", "")

    def test_como_registro(self) -> None:
        registro = chave_como_registro(CHAVE)
        assert registro["entity_type"] == "customer"
        assert registro["state"] == "SP"


# ===========================================================================
# RepositorioLocal
# ===========================================================================


class TestRepositorioLocal:
    def test_alteracoes_so_gravadas_em_persistir(
        self, tmp_path: Path, repo: RepositorioLocal
    ) -> None:
        repo.inserir_clientes([{"short_name": "ACME"}])
        assert not (tmp_path / "clientes.json").exists()

        repo.persistir()

        [cliente] = RepositorioLocal(tmp_path).listar_clientes()
        assert cliente["short_name"] == "ACME"
        assert cliente["id"]
        assert cliente["created_at"]

    def test_atualizar_id_inexistente(self, repo: RepositorioLocal) -> None:
        with pytest.raises(ErroArmazenamento, match="Cliente não encontrado"):
            repo.atualizar_geo_cliente("nao-existe", 1.0, 2.0, True)

    def test_atualizar_transportadora_zera_geocodificacao(
        self, repo: RepositorioLocal
    ) -> None:
        repo.inserir_clientes(
            [{"short_name": "ACME", "transportadora_geocoded": True, "transportadora_lat": 1.0}]
        )
        id_ = repo.listar_clientes()[0]["id"]

        repo.atualizar_transportadora(id_, "RUA C", "SUMARE", "SP", "13170-000", True)

        cliente = repo.listar_clientes()[0]
        assert cliente["use_transportadora"] is True
        assert cliente["transportadora_geocoded"] is False
        assert cliente["transportadora_lat"] is None

    def test_json_corrompido(self, tmp_path: Path) -> None:
        (tmp_path / "clientes.json").write_text("{não é json", encoding="utf-8")
        with pytest.raises(ErroArmazenamento, match="Falha ao ler"):
            RepositorioLocal(tmp_path).listar_clientes()

    def test_cache_persistido_e_recarregado(self, tmp_path: Path, repo: RepositorioLocal) -> None:
        repo.gravar_cache(CHAVE, -22.9, -47.0, "cep", confidence=0.8, metadata={"q": "x"})
        repo.persistir()

        registro = RepositorioLocal(tmp_path).obter_cache(CHAVE)

        assert registro["lat"] == pytest.approx(-22.9)
        assert registro["provider"] == "cep"
        assert registro["confidence"] == pytest.approx(0.8)
        assert registro["metadata"] == {"q": "x"}

    def test_cache_ultima_entrada_vence(self, tmp_path: Path, repo: RepositorioLocal) -> None:
        repo.gravar_cache(CHAVE, None, None, "nenhum")
        repo.persistir()
        repo.gravar_cache(CHAVE, -22.9, -47.0, "endereco")
        repo.persistir()

        registro = RepositorioLocal(tmp_path).obter_cache(CHAVE)

        assert registro["provider"] == "endereco"
        assert len((tmp_path / "geocache.csv").read_text(encoding="utf-8").splitlines()) == 3

    def test_resetar_cache_faz_backup(self, tmp_path: Path, repo: RepositorioLocal) -> None:
        repo.gravar_cache(CHAVE, -22.9, -47.0, "cep")
        repo.persistir()

        backup = repo.resetar_cache()

        assert backup == tmp_path / "geocache.backup.csv"
        assert backup.exists()
        assert not (tmp_path / "geocache.csv").exists()
        assert repo.obter_cache(CHAVE) is None

    def test_resetar_cache_inexistente(self, repo: RepositorioLocal) -> None:
        assert repo.resetar_cache() is None

    def test_rotas_salvas(self, tmp_path: Path, repo: RepositorioLocal) -> None:
        salva = repo.salvar_rota(
            "Rota A", {"nome": "Rota Mais Rápida"}, [{"id": "company-start"}], {"total_pontos": 1}
        )
        repo.persistir()

        [recarregada] = RepositorioLocal(tmp_path).listar_rotas()
        assert recarregada["id"] == salva["id"]
        assert recarregada["nome"] == "Rota A"
        assert recarregada["waypoints"] == [{"id": "company-start"}]

        repo.remover_rota(salva["id"])
        repo.persistir()
        assert RepositorioLocal(tmp_path).listar_rotas() == []

    def test_remover_rota_inexistente(self, repo: RepositorioLocal) -> None:
        with pytest.raises(ErroArmazenamento, match="Rota não encontrada"):
            repo.remover_rota("nao-existe")


# ===========================================================================
# RepositorioSupabase
# ===========================================================================


def _resposta(dados: list[dict]) -> MagicMock:
    resp = MagicMock()
    resp.data = dados
    return resp


class TestRepositorioSupabase:
    def test_erro_da_api_vira_erro_de_armazenamento(self) -> None:
        cliente = MagicMock()
        cliente.table.return_value.select.return_value.order.return_value.execute.side_effect = (
            _erro_api("sem permissão")
        )

        with pytest.raises(ErroArmazenamento, match="Falha ao carregar clientes: sem permissão"):
            RepositorioSupabase(cliente).listar_clientes()

    def test_obter_cache_filtra_pela_chave(self) -> None:
        cliente = MagicMock()
        consulta = cliente.table.return_value.select.return_value.match.return_value
        consulta.limit.return_value.execute.return_value = _resposta([{"lat": -22.9}])

        registro = RepositorioSupabase(cliente).obter_cache(CHAVE)

        assert registro == {"lat": -22.9}
        cliente.table.assert_called_with("geocode_cache")
        cliente.table.return_value.select.return_value.match.assert_called_once_with(
            chave_como_registro(CHAVE)
        )

    def test_gravar_cache_faz_upsert_na_chave(self) -> None:
        cliente = MagicMock()
        RepositorioSupabase(cliente).gravar_cache(CHAVE, -22.9, -47.0, "cep")

        args, kwargs = cliente.table.return_value.upsert.call_args
        assert args[0]["provider"] == "cep"
        assert kwargs["on_conflict"] == (
            "entity_type,short_name_normalized,cep_normalized,address,city,state"
        )

    def test_atualizar_pedidos_do_cliente_ignora_rotas_fixas(self) -> None:
        cliente = MagicMock()
        RepositorioSupabase(cliente).atualizar_pedidos_do_cliente("ACME", -22.8, -47.2, True)

        update = cliente.table.return_value.update
        update.assert_called_once_with({"lat": -22.8, "lon": -47.2, "geocoded": True})
        filtro = update.return_value.eq.return_value.or_
        filtro.assert_called_once_with(
            'rota_normalizada.is.null,rota_normalizada.not.in.("ENTREGAS ZINCOLOR")'
        )

    def test_salvar_rota_desfaz_em_falha(self) -> None:
        tabelas = {
            "saved_routes": MagicMock(),
            "saved_route_waypoints": MagicMock(),
            "route_metrics": MagicMock(),
        }
        cliente = MagicMock()
        cliente.table.side_effect = lambda nome: tabelas[nome]
        tabelas["saved_routes"].insert.return_value.execute.return_value = _resposta(
            [{"id": "r1", "name": "Rota A", "created_at": "2024-03-15"}]
        )
        tabelas["saved_route_waypoints"].insert.return_value.execute.side_effect = _erro_api()

        with pytest.raises(ErroArmazenamento, match="pontos da rota"):
            RepositorioSupabase(cliente).salvar_rota("Rota A", {}, [{"id": "a"}], {})

        tabelas["saved_routes"].delete.return_value.eq.assert_called_once_with("id", "r1")
        tabelas["route_metrics"].insert.assert_not_called()

    def test_salvar_rota_completa(self) -> None:
        tabelas = {
            "saved_routes": MagicMock(),
            "saved_route_waypoints": MagicMock(),
            "route_metrics": MagicMock(),
        }
        cliente = MagicMock()
        cliente.table.side_effect = lambda nome: tabelas[nome]
        tabelas["saved_routes"].insert.return_value.execute.return_value = _resposta(
            [{"id": "r1", "name": "Rota A", "created_at": "2024-03-15"}]
        )

        salva = RepositorioSupabase(cliente).salvar_rota(
            "Rota A", {"nome": "x"}, [{"id": "a"}, {"id": "b"}], {"distancia_total": 12.5}
        )

        assert salva["id"] == "r1"
        pontos = tabelas["saved_route_waypoints"].insert.call_args.args[0]
        assert [p["position"] for p in pontos] == [0, 1]
        metricas = tabelas["route_metrics"].insert.call_args.args[0]
        assert metricas["total_distance"] == 12.5
        assert metricas["waypoint_count"] == 0

    def test_listar_rotas_mapeia_linhas_aninhadas(self) -> None:
        cliente = MagicMock()
        cliente.table.return_value.select.return_value.order.return_value.execute.return_value = (
            _resposta(
                [
                    {
                        "id": "r1",
                        "name": "Rota A",
                        "created_at": "2024-03-15",
                        "route_data": {"nome": "x"},
                        "saved_route_waypoints": [
                            {"position": 1, "waypoint_data": {"id": "b"}},
                            {"position": 0, "waypoint_data": {"id": "a"}},
                        ],
                        "route_metrics": [
                            {
                                "total_distance": "12.5",
                                "total_duration": 30,
                                "waypoint_count": 2,
                                "order_count": 3,
                                "produzido_kg": None,
                                "embalado_kg": 4,
                            }
                        ],
                    }
                ]
            )
        )

        [rota] = RepositorioSupabase(cliente).listar_rotas()

        assert rota["nome"] == "Rota A"
        assert [w["id"] for w in rota["waypoints"]] == ["a", "b"]
        assert rota["metricas"]["distancia_total"] == 12.5
        assert rota["metricas"]["total_pedidos"] == 3
        assert rota["metricas"]["produzido_kg"] == 0


# ===========================================================================
# criar_repositorio
# ===========================================================================


class TestCriarRepositorio:
    def test_sem_credenciais_usa_local(self, tmp_path: Path) -> None:
        repo = criar_repositorio(tmp_path)
        assert isinstance(repo, RepositorioLocal)
        assert repo.diretorio == tmp_path

    def test_com_credenciais_usa_supabase(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SUPABASE_URL", "https://exemplo.supabase.co")
        monkeypatch.setenv("SUPABASE_KEY", "chave")

        with patch("roteirizacao.armazenamento.create_client") as mock_create:
            repo = criar_repositorio(tmp_path)

        assert isinstance(repo, RepositorioSupabase)
        mock_create.assert_called_once_with("https://exemplo.supabase.co", "chave")
