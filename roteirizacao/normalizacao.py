"""
Normalização de texto, CEP, endereços e números usados em todo o pipeline.

As chaves de vínculo (nome abreviado do cliente, rota) e as chaves do cache
de geocodificação dependem destas funções; alterar o comportamento aqui
invalida entradas já persistidas.
"""

import re

import pandas as pd


def _texto_limpo(valor: object) -> str:
    """Converte valor de planilha em texto, tratando nulos/NaN como vazio."""
    if valor is None:
        return ""
    try:
        if bool(pd.isna(valor)):
            return ""
    except (TypeError, ValueError):
        pass
    if isinstance(valor, (list, tuple, dict, set)):
        return ""
    if isinstance(valor, float) and valor.is_integer():
        return str(int(valor))
    return str(valor)


def normalizar_texto(valor: object) -> str:
    """Normaliza texto: trim, maiúsculas e espaços colapsados.

    Valores não textuais (números, datas) são apenas convertidos e aparados,
    sem mudança de caixa.

    Args:
        valor: Qualquer valor vindo de planilha ou do banco.

    Returns:
        Texto normalizado, ``""`` para nulos.
    """
    texto = _texto_limpo(valor)
    if not isinstance(valor, str):
        return texto.strip()
    return re.sub(r"\s+", " ", texto.strip().upper())


def normalizar_cep(valor: object) -> str:
    """Normaliza CEP para ``NNNNN-NNN``; retorna só os dígitos se não tiver 8.

    Células numéricas perdem o zero à esquerda no Excel, por isso são
    completadas até 8 dígitos.
    """
    digitos = re.sub(r"[^0-9]", "", normalizar_texto(valor))
    if isinstance(valor, (int, float)) and not isinstance(valor, bool) and digitos:
        digitos = digitos.zfill(8)
    if len(digitos) == 8:
        return f"{digitos[:5]}-{digitos[5:]}"
    return digitos


def normalizar_endereco(partes: list[object]) -> str:
    """Junta partes normalizadas de endereço com ``", "``, ignorando vazias."""
    normalizadas = [normalizar_texto(p) for p in partes]
    return ", ".join(p for p in normalizadas if p)


def separar_cidade_uf(valor: object) -> tuple[str | None, str | None]:
    """Separa ``"CAMPINAS - SP"`` / ``"Campinas, SP"`` em ``(cidade, uf)``.

    A UF só é reconhecida quando a última parte tem exatamente duas letras.

    Returns:
        Tupla ``(cidade, uf)``; ``(None, None)`` para entrada vazia.
    """
    if not isinstance(valor, str):
        return None, None
    texto = re.sub(r"\s+", " ", valor.strip())
    if not texto:
        return None, None

    partes = [p.strip() for p in re.split(r"[-,]", texto) if p.strip()]
    if not partes:
        return None, None

    cidade: str | None = partes[0]
    uf: str | None = None
    if re.fullmatch(r"[A-Za-z]{2}", partes[-1]):
        uf = partes[-1].upper()
        if len(partes) > 1:
            cidade = " ".join(partes[:-1]) or cidade
    return cidade, uf


def converter_numero(valor: object) -> float:
    """Converte número em formato pt-BR (``"1.234,5"``) para float; inválido → 0."""
    if valor is None or isinstance(valor, bool):
        return 0.0
    if isinstance(valor, (int, float)):
        return 0.0 if pd.isna(valor) else float(valor)
    texto = str(valor).strip()
    if not texto:
        return 0.0
    texto = texto.replace(".", "").replace(",", ".")
    try:
        numero = float(texto)
    except ValueError:
        return 0.0
    return numero if numero == numero and abs(numero) != float("inf") else 0.0


def formatar_numero(valor: object, casas: int = 2) -> str:
    """Formata número no padrão pt-BR (milhar com ponto, decimal com vírgula)."""
    if isinstance(valor, str) and "," not in valor:
        try:
            numero = float(valor.strip() or 0)
        except ValueError:
            numero = 0.0
    else:
        numero = converter_numero(valor)
    if numero != numero or abs(numero) == float("inf"):
        numero = 0.0
    return (
        f"{numero:,.{casas}f}".replace(",", "X").replace(".", ",").replace("X", ".")
    )
