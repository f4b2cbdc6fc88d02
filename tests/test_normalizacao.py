"""
Testes para roteirizacao.normalizacao.

Cobre:
- normalizar_texto: trim, maiúsculas, espaços colapsados, nulos
- normalizar_cep: formatação, zero à esquerda perdido no Excel, CEP parcial
- separar_cidade_uf: separadores '-' e ',', UF ausente
- converter_numero / formatar_numero: formato pt-BR
"""

import math

import pytest

from roteirizacao.normalizacao import (
    converter_numero,
    formatar_numero,
    normalizar_cep,
    normalizar_endereco,
    normalizar_texto,
    separar_cidade_uf,
)


class TestNormalizarTexto:
    def test_maiusculas_e_espacos(self) -> None:
        """Texto é aparado, vira maiúsculo e tem espaços colapsados."""
        assert normalizar_texto("  rua   das  flores ") == "RUA DAS FLORES"

    def test_nulos_viram_vazio(self) -> None:
        """None e NaN resultam em string vazia."""
        assert normalizar_texto(None) == ""
        assert normalizar_texto(float("nan")) == ""

    def test_float_inteiro_sem_decimal(self) -> None:
        """Número inteiro lido como float do Excel perde o '.0'."""
        assert normalizar_texto(123.0) == "123"


class TestNormalizarCep:
    def test_com_hifen(self) -> None:
        assert normalizar_cep("13054-703") == "13054-703"

    def test_somente_digitos(self) -> None:
        assert normalizar_cep("13054703") == "13054-703"

    def test_numerico_completa_zero_a_esquerda(self) -> None:
        """CEP numérico do Excel (sem o zero inicial) é completado."""
        assert normalizar_cep(1310100) == "01310-100"

    def test_cep_incompleto_retorna_digitos(self) -> None:
        assert normalizar_cep("1305-4") == "13054"

    def test_vazio(self) -> None:
        assert normalizar_cep(None) == ""
        assert normalizar_cep("") == ""


class TestNormalizarEndereco:
    def test_ignora_partes_vazias(self) -> None:
        assert normalizar_endereco(["rua a", None, "", " centro "]) == "RUA A, CENTRO"


class TestSepararCidadeUf:
    @pytest.mark.parametrize(
        "valor, esperado",
        [
            ("CAMPINAS - SP", ("CAMPINAS", "SP")),
            ("Campinas, sp", ("Campinas", "SP")),
            ("Campinas", ("Campinas", None)),
        ],
    )
    def test_formatos(self, valor: str, esperado: tuple) -> None:
        assert separar_cidade_uf(valor) == esperado

    def test_vazio(self) -> None:
        assert separar_cidade_uf("   ") == (None, None)
        assert separar_cidade_uf(None) == (None, None)


class TestNumeros:
    def test_converter_formato_brasileiro(self) -> None:
        assert converter_numero("1.234,5") == pytest.approx(1234.5)

    def test_converter_invalido_vira_zero(self) -> None:
        assert converter_numero("abc") == 0.0
        assert converter_numero(None) == 0.0
        assert converter_numero(math.nan) == 0.0

    def test_converter_numerico(self) -> None:
        assert converter_numero(12) == 12.0

    def test_formatar_milhar_e_decimal(self) -> None:
        assert formatar_numero(1234.5) == "1.234,50"

    def test_formatar_sem_casas(self) -> None:
        assert formatar_numero(90.4, casas=0) == "90"
