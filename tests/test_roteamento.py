"""
Testes para roteirizacao.roteamento.

Cobre:
- calcular_rotas: três preferências no ORS, unidades e geometria [lat, lon]
- calcular_rotas: fallback OSRM sem chave, com falha total do ORS e falha parcial
- otimizar_rota: ordem dos jobs do ORS e do OSRM trip (inversa de waypoint_index)
- calcular_rota: rota única
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from roteirizacao.roteamento import calcular_rota, calcular_rotas, otimizar_rota

PARTIDA = {"id": "company-start", "lat": -22.87, "lon": -47.18}
A = {"id": "a", "lat": -22.90, "lon": -47.06}
B = {"id": "b", "lat": -22.82, "lon": -47.27}
C = {"id": "c", "lat": -22.95, "lon": -47.10}


def _resposta(dados: dict) -> MagicMock:
    resp = MagicMock()
    resp.json.return_value = dados
    resp.raise_for_status.return_value = None
    return resp


def _geojson_ors(distancia_km: float, duracao_s: float) -> dict:
    return {
        "features": [
            {
                "geometry": {"coordinates": [[-47.18, -22.87], [-47.06, -22.90]]},
                "properties": {
                    "summary": {"distance": distancia_km, "duration": duracao_s},
                    "segments": [
                        {
                            "distance": distancia_km,
                            "duration": duracao_s,
                            "steps": [
                                {"instruction": "Siga em frente", "distance": 1.0, "duration": 60}
                            ],
                        }
                    ],
                },
            }
        ]
    }


def _osrm(n_rotas: int = 1) -> dict:
    return {
        "code": "Ok",
        "routes": [
            {
                "distance": 15000.0 + i * 1000,
                "duration": 1200.0,
                "geometry": {"coordinates": [[-47.18, -22.87], [-47.06, -22.90]]},
                "legs": [
                    {
                        "distance": 15000.0,
                        "duration": 1200.0,
                        "steps": [{"distance": 500.0, "duration": 60.0, "maneuver": {}}],
                    }
                ],
            }
            for i in range(n_rotas)
        ],
    }


# ===========================================================================
# calcular_rotas
# ===========================================================================


class TestCalcularRotas:
    def test_menos_de_dois_pontos(self) -> None:
        assert calcular_rotas([PARTIDA], api_key="k") is None

    def test_tres_preferencias_ors(self) -> None:
        with patch(
            "roteirizacao.roteamento.requests.post",
            return_value=_resposta(_geojson_ors(12.5, 1800)),
        ) as mock_post:
            resultado = calcular_rotas([PARTIDA, A], api_key="chave")

        assert resultado["usou_fallback"] is False
        assert [r["id"] for r in resultado["rotas"]] == ["fastest", "shortest", "recommended"]
        preferencias = [c.kwargs["json"]["preference"] for c in mock_post.call_args_list]
        assert preferencias == ["fastest", "shortest", "recommended"]
        assert mock_post.call_args.kwargs["headers"]["Authorization"] == "chave"

        opcao = resultado["rotas"][0]
        assert opcao["distancia_total"] == pytest.approx(12.5)
        assert opcao["duracao_total"] == pytest.approx(30.0)
        assert opcao["geometria"][0] == [-22.87, -47.18]
        assert opcao["segmentos"][0]["passos"][0]["instrucao"] == "Siga em frente"

    def test_falha_parcial_mantem_opcoes_validas(self) -> None:
        respostas = [
            requests.ConnectionError("caiu"),
            _resposta(_geojson_ors(10.0, 600)),
            _resposta({"features": []}),
        ]
        with patch("roteirizacao.roteamento.requests.post", side_effect=respostas):
            resultado = calcular_rotas([PARTIDA, A], api_key="chave")

        assert [r["id"] for r in resultado["rotas"]] == ["shortest"]
        assert resultado["usou_fallback"] is False

    def test_sem_chave_usa_osrm(self) -> None:
        with (
            patch("roteirizacao.roteamento.requests.post") as mock_post,
            patch(
                "roteirizacao.roteamento.requests.get", return_value=_resposta(_osrm(3))
            ) as mock_get,
        ):
            resultado = calcular_rotas([PARTIDA, A])

        mock_post.assert_not_called()
        assert resultado["usou_fallback"] is True
        assert [r["nome"] for r in resultado["rotas"]] == [
            "Rota Principal (OSRM)",
            "Rota Alternativa 1 (OSRM)",
            "Rota Alternativa 2 (OSRM)",
        ]
        assert resultado["rotas"][0]["distancia_total"] == pytest.approx(15.0)
        assert resultado["rotas"][0]["duracao_total"] == pytest.approx(20.0)
        assert resultado["rotas"][0]["segmentos"][0]["passos"][0]["instrucao"] == "Continue"
        url = mock_get.call_args.args[0]
        assert url.endswith("/route/v1/driving/-47.18,-22.87;-47.06,-22.9")
        assert mock_get.call_args.kwargs["params"]["alternatives"] == 2

    def test_ors_falha_total_usa_osrm(self) -> None:
        with (
            patch(
                "roteirizacao.roteamento.requests.post",
                side_effect=requests.Timeout("lento"),
            ),
            patch("roteirizacao.roteamento.requests.get", return_value=_resposta(_osrm())),
        ):
            resultado = calcular_rotas([PARTIDA, A], api_key="chave")

        assert resultado["usou_fallback"] is True
        assert len(resultado["rotas"]) == 1

    def test_tudo_falha_retorna_none(self) -> None:
        with patch(
            "roteirizacao.roteamento.requests.get",
            side_effect=requests.ConnectionError("sem rede"),
        ):
            assert calcular_rotas([PARTIDA, A], api_key="") is None


# ===========================================================================
# otimizar_rota
# ===========================================================================


class TestOtimizarRota:
    def test_ordem_dos_jobs_ors(self) -> None:
        otimizacao = {
            "routes": [
                {
                    "steps": [
                        {"type": "start"},
                        {"type": "job", "job": 2},
                        {"type": "job", "job": 0},
                        {"type": "job", "job": 1},
                        {"type": "end"},
                    ]
                }
            ]
        }
        respostas = [_resposta(otimizacao)] + [_resposta(_geojson_ors(10.0, 600))] * 3
        with patch("roteirizacao.roteamento.requests.post", side_effect=respostas) as mock_post:
            resultado = otimizar_rota([PARTIDA, A, B, C], api_key="chave")

        assert [w["id"] for w in resultado["waypoints"]] == ["company-start", "c", "a", "b"]
        corpo = mock_post.call_args_list[0].kwargs["json"]
        assert corpo["vehicles"][0]["start"] == [PARTIDA["lon"], PARTIDA["lat"]]
        assert corpo["vehicles"][0]["end"] == [PARTIDA["lon"], PARTIDA["lat"]]

    def test_jobs_nao_alocados_ficam_no_fim(self) -> None:
        otimizacao = {
            "routes": [
                {
                    "steps": [
                        {"type": "start"},
                        {"type": "job", "job": 2},
                        {"type": "end"},
                    ]
                }
            ],
            "unassigned": [{"id": 0}, {"id": 1}],
        }
        respostas = [_resposta(otimizacao)] + [_resposta(_geojson_ors(10.0, 600))] * 3
        with patch("roteirizacao.roteamento.requests.post", side_effect=respostas):
            resultado = otimizar_rota([PARTIDA, A, B, C], api_key="chave")

        assert [w["id"] for w in resultado["waypoints"]] == ["company-start", "c", "a", "b"]

    def test_osrm_trip_usa_inversa_de_waypoint_index(self) -> None:
        # entrada i está na posição waypoint_index[i] da viagem
        trip = {
            "code": "Ok",
            "waypoints": [
                {"waypoint_index": 0},
                {"waypoint_index": 2},
                {"waypoint_index": 3},
                {"waypoint_index": 1},
            ],
        }
        with patch(
            "roteirizacao.roteamento.requests.get",
            side_effect=[_resposta(trip), _resposta(_osrm())],
        ) as mock_get:
            resultado = otimizar_rota([PARTIDA, A, B, C], api_key="")

        assert [w["id"] for w in resultado["waypoints"]] == ["company-start", "c", "a", "b"]
        assert mock_get.call_args_list[0].kwargs["params"] == {
            "source": "first",
            "destination": "last",
            "roundtrip": "false",
        }

    def test_osrm_trip_falha_mantem_ordem(self) -> None:
        with patch(
            "roteirizacao.roteamento.requests.get",
            side_effect=[requests.ConnectionError("x"), _resposta(_osrm())],
        ):
            resultado = otimizar_rota([PARTIDA, A, B], api_key="")

        assert [w["id"] for w in resultado["waypoints"]] == ["company-start", "a", "b"]

    def test_ors_falha_recorre_ao_osrm(self) -> None:
        trip = {
            "code": "Ok",
            "waypoints": [{"waypoint_index": 0}, {"waypoint_index": 2}, {"waypoint_index": 1}],
        }
        respostas_post = [requests.HTTPError("403")] + [_resposta(_geojson_ors(5.0, 300))] * 3
        with (
            patch("roteirizacao.roteamento.requests.post", side_effect=respostas_post),
            patch("roteirizacao.roteamento.requests.get", return_value=_resposta(trip)),
        ):
            resultado = otimizar_rota([PARTIDA, A, B], api_key="chave")

        assert [w["id"] for w in resultado["waypoints"]] == ["company-start", "b", "a"]
        assert resultado["usou_fallback"] is False


# ===========================================================================
# calcular_rota
# ===========================================================================


def test_calcular_rota_unica_ors() -> None:
    with patch(
        "roteirizacao.roteamento.requests.post",
        return_value=_resposta(_geojson_ors(7.5, 900)),
    ) as mock_post:
        rota = calcular_rota([PARTIDA, A], api_key="chave")

    assert "preference" not in mock_post.call_args.kwargs["json"]
    assert rota["distancia_total"] == pytest.approx(7.5)
    assert rota["duracao_total"] == pytest.approx(15.0)
    assert rota["waypoints"] == [PARTIDA, A]


def test_calcular_rota_unica_osrm_sem_alternativas() -> None:
    with patch(
        "roteirizacao.roteamento.requests.get", return_value=_resposta(_osrm())
    ) as mock_get:
        rota = calcular_rota([PARTIDA, A], api_key="")

    assert "alternatives" not in mock_get.call_args.kwargs["params"]
    assert rota["distancia_total"] == pytest.approx(15.0)
