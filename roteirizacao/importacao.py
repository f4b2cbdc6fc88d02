"""
Importação das planilhas de clientes e pedidos.

Fluxo de duas planilhas: clientes (cadastro com endereço/CEP) e pedidos
(vinculados ao cliente pelo nome abreviado normalizado).  A importação é de
substituição: as tabelas importadas são esvaziadas e recarregadas.  Qualquer
pedido sem cliente correspondente aborta a importação antes de gravar.

Uso standalone::

    python -m roteirizacao.importacao --clientes clientes.xlsx --pedidos pedidos.xlsx
    python -m roteirizacao.importacao --pedidos pedidos.xlsx
"""

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

import pandas as pd

from roteirizacao.config import (
    COLUNAS_CEP_PEDIDO,
    COLUNAS_DATA_PEDIDO,
    COLUNAS_NUMERICAS_PEDIDO,
    DATA_DIR,
    ROTAS_CEP_PADRAO,
)
from roteirizacao.normalizacao import (
    converter_numero,
    normalizar_cep,
    normalizar_endereco,
    normalizar_texto,
)

log = logging.getLogger(__name__)

Linha = dict[str, Any]

#: Formatos textuais de data aceitos, na ordem de tentativa
_FORMATOS_DATA: tuple[str, ...] = ("%d/%m/%Y", "%m/%d/%Y", "%Y-%m-%d", "%d-%m-%Y")

#: Dia zero do calendário serial do Excel (com o bug do ano 1900)
_EPOCA_EXCEL = date(1899, 12, 30)

#: Máximo de exemplos listados na mensagem de pedidos sem cliente
_MAX_EXEMPLOS_SEM_CLIENTE = 5


class ErroImportacao(ValueError):
    """Planilha vazia, ausente ou inconsistente com o cadastro de clientes."""


# ===========================================================================
# Leitura de planilhas
# ===========================================================================


def ler_planilha(arquivo: Path) -> list[Linha]:
    """Lê a primeira aba de uma planilha (``.xlsx``/``.xls``) ou um ``.csv``.

    Células ausentes viram ``""``, linhas totalmente vazias são descartadas e
    células de texto são normalizadas (trim, maiúsculas, espaços colapsados).
    Células de data/hora viram texto ISO.  No CSV, lido todo como texto, as
    colunas de :data:`~roteirizacao.config.COLUNAS_NUMERICAS_PEDIDO` viram
    número.

    Args:
        arquivo: Caminho da planilha.

    Returns:
        Lista de linhas (``dict`` coluna → valor).

    Raises:
        ErroImportacao: Se o arquivo não existir ou não puder ser lido.
    """
    if not arquivo.exists():
        raise ErroImportacao(f"Arquivo não encontrado: {arquivo}")

    csv = arquivo.suffix.lower() == ".csv"
    if csv:
        df = _ler_csv_com_fallback(arquivo)
    else:
        try:
            df = pd.read_excel(arquivo, sheet_name=0, dtype=object)
        except (ValueError, OSError) as exc:
            raise ErroImportacao(f"Falha ao ler {arquivo.name}: {exc}") from exc

    df.columns = [str(c).strip() for c in df.columns]
    if csv:
        for coluna in COLUNAS_NUMERICAS_PEDIDO:
            if coluna in df.columns:
                df[coluna] = df[coluna].map(_numero_csv)
    df = df.astype(object).where(df.notna(), "")

    linhas = [
        {coluna: _normalizar_celula(valor) for coluna, valor in rec.items()}
        for rec in df.to_dict(orient="records")
    ]
    linhas = [linha for linha in linhas if not _linha_vazia(linha)]
    log.info("  %s: %d linha(s), colunas: %s", arquivo.name, len(linhas), list(df.columns))
    return linhas


def _ler_csv_com_fallback(arquivo: Path) -> pd.DataFrame:
    """Lê um CSV tentando UTF-8 BOM e depois latin-1."""
    for encoding in ("utf-8-sig", "latin-1"):
        try:
            return pd.read_csv(
                arquivo,
                encoding=encoding,
                sep=None,
                engine="python",
                dtype=str,
                keep_default_na=False,
            )
        except UnicodeDecodeError:
            continue
        except (pd.errors.ParserError, pd.errors.EmptyDataError, OSError) as exc:
            raise ErroImportacao(f"Falha ao ler {arquivo.name}: {exc}") from exc
    raise ErroImportacao(
        f"Não foi possível decodificar {arquivo.name} com UTF-8 nem latin-1."
    )


def _numero_csv(valor: object) -> object:
    """Célula numérica lida como texto do CSV.

    Um único ponto sem vírgula é separador decimal (``"10.5"``); o resto segue
    o formato pt-BR (``"1.234,5"``).  Célula vazia continua vazia.
    """
    texto = str(valor).strip()
    if not texto:
        return ""
    if texto.count(".") == 1 and "," not in texto:
        try:
            return float(texto)
        except ValueError:
            return converter_numero(texto)
    return converter_numero(texto)


def _normalizar_celula(valor: object) -> object:
    if isinstance(valor, str):
        return normalizar_texto(valor)
    if isinstance(valor, (datetime, date)):
        return valor.isoformat()
    return valor


def _linha_vazia(linha: Linha) -> bool:
    for valor in linha.values():
        if valor is None:
            continue
        if isinstance(valor, str) and not valor.strip():
            continue
        return False
    return True


# ===========================================================================
# Datas
# ===========================================================================


def converter_data(valor: object) -> str | None:
    """Converte data de planilha para ISO ``YYYY-MM-DD``.

    Aceita número serial do Excel, ``datetime``/``date`` e texto em
    ``dd/MM/yyyy``, ``MM/dd/yyyy``, ``yyyy-MM-dd``, ``dd-MM-yyyy`` ou ISO com
    hora.  Valores vazios ou irreconhecíveis retornam ``None``.
    """
    if valor is None or valor == "" or isinstance(valor, bool):
        return None

    if isinstance(valor, (int, float)):
        if valor != valor or valor <= 0:
            return None
        try:
            return (_EPOCA_EXCEL + timedelta(days=int(valor))).isoformat()
        except OverflowError:
            return None

    if isinstance(valor, datetime):
        return valor.date().isoformat()
    if isinstance(valor, date):
        return valor.isoformat()

    if not isinstance(valor, str):
        return None

    texto = valor.strip()
    for formato in _FORMATOS_DATA:
        try:
            return datetime.strptime(texto, formato).date().isoformat()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(texto).date().isoformat()
    except ValueError:
        pass

    convertido = pd.to_datetime(texto, errors="coerce")
    if pd.isna(convertido):
        return None
    return convertido.date().isoformat()


def ler_clientes(arquivo: Path) -> list[Linha]:
    """Lê a planilha de clientes."""
    return ler_planilha(arquivo)


def ler_pedidos(arquivo: Path) -> list[Linha]:
    """Lê a planilha de pedidos e converte as colunas de data para ISO."""
    linhas = ler_planilha(arquivo)
    for linha in linhas:
        for coluna in COLUNAS_DATA_PEDIDO:
            if coluna in linha:
                linha[coluna] = converter_data(linha[coluna])
    return linhas


# ===========================================================================
# Montagem dos registros
# ===========================================================================


def montar_clientes(linhas: list[Linha]) -> list[Linha]:
    """Converte linhas da planilha de clientes em registros ``customers``."""
    registros: list[Linha] = []
    for linha in linhas:
        nome_curto = normalizar_texto(linha.get("Nome Abreviado") or linha.get("Nome"))
        cep = normalizar_cep(linha.get("CEP"))
        registros.append(
            {
                "short_name": nome_curto,
                "name": normalizar_texto(linha.get("Nome")) or None,
                "address": normalizar_endereco(
                    [
                        linha.get("Logradouro"),
                        linha.get("Número"),
                        linha.get("Complemento"),
                        linha.get("Bairro"),
                    ]
                )
                or None,
                "city": normalizar_texto(linha.get("Cidade")) or None,
                "state": normalizar_texto(linha.get("Estado")) or None,
                "cep": cep or None,
                "lat": None,
                "lon": None,
                "geocoded": False,
                "transportadora_address": None,
                "transportadora_city": None,
                "transportadora_state": None,
                "transportadora_cep": None,
                "transportadora_lat": None,
                "transportadora_lon": None,
                "transportadora_geocoded": False,
                "use_transportadora": False,
                "raw_data": dict(linha),
            }
        )
    return registros


def _cep_do_pedido(linha: Linha) -> str:
    for coluna in COLUNAS_CEP_PEDIDO:
        cep = normalizar_cep(linha.get(coluna))
        if cep:
            return cep
    return ""


def montar_pedidos(pedidos: list[Linha], clientes: list[Linha]) -> list[Linha]:
    """Converte linhas de pedidos em registros ``orders``.

    Coordenadas e CEP são herdados do cliente quando disponíveis; rotas
    predefinidas sem CEP recebem o CEP fixo da rota.

    Args:
        pedidos:  Linhas da planilha de pedidos.
        clientes: Registros de clientes (importados agora ou já persistidos).

    Returns:
        Lista de registros prontos para inserção.
    """
    por_nome = {normalizar_texto(c.get("short_name")): c for c in clientes}
    registros: list[Linha] = []

    for linha in pedidos:
        nome_curto = normalizar_texto(linha.get("Cliente"))
        cliente = por_nome.get(nome_curto, {})
        rota_normalizada = normalizar_texto(linha.get("Rota"))

        cep = (
            _cep_do_pedido(linha)
            or normalizar_cep(cliente.get("cep"))
            or ROTAS_CEP_PADRAO.get(rota_normalizada, "")
        )

        lat = cliente.get("lat")
        lon = cliente.get("lon")
        geocoded = bool(cliente.get("geocoded")) and lat is not None and lon is not None

        registros.append(
            {
                "customer_short_name": nome_curto,
                "cliente": normalizar_texto(linha.get("Cliente")) or None,
                "data_entrega": linha.get("Data Entrega") or None,
                "rota": normalizar_texto(linha.get("Rota")) or None,
                "rota_normalizada": rota_normalizada or None,
                "cep": cep or None,
                "lat": lat if geocoded else None,
                "lon": lon if geocoded else None,
                "geocoded": geocoded,
                "raw_data": dict(linha),
            }
        )
    return registros


def pedidos_sem_cliente(pedidos: list[Linha], nomes_clientes: set[str]) -> list[str]:
    """Lista até 5 clientes distintos de pedidos sem cadastro correspondente.

    Formato de cada exemplo: ``"CLIENTE (rota R)"`` ou só ``"CLIENTE"``.
    """
    sem_cliente: dict[str, str] = {}
    for linha in pedidos:
        nome_curto = normalizar_texto(linha.get("Cliente"))
        if nome_curto in nomes_clientes or nome_curto in sem_cliente:
            continue
        cliente = normalizar_texto(linha.get("Cliente"))
        rota = normalizar_texto(linha.get("Rota"))
        sem_cliente[nome_curto] = f"{cliente} (rota {rota})" if rota else cliente

    return list(sem_cliente.values())[:_MAX_EXEMPLOS_SEM_CLIENTE]


# ===========================================================================
# Fluxo de importação
# ===========================================================================


def importar_clientes_e_pedidos(
    repo: Any,
    arquivo_clientes: Path | None = None,
    arquivo_pedidos: Path | None = None,
) -> dict[str, int | None]:
    """Importa clientes e/ou pedidos substituindo os dados persistidos.

    Args:
        repo:             Repositório de dados (ver :mod:`roteirizacao.armazenamento`).
        arquivo_clientes: Planilha de clientes (opcional).
        arquivo_pedidos:  Planilha de pedidos (opcional).

    Returns:
        ``{"clientes": n | None, "pedidos": n | None}`` com as quantidades
        inseridas; ``None`` para o tipo não importado.

    Raises:
        ErroImportacao: Nenhum arquivo, planilha vazia, nenhum cliente
                        cadastrado ou pedidos sem cliente correspondente.
    """
    if arquivo_clientes is None and arquivo_pedidos is None:
        raise ErroImportacao("Selecione ao menos um arquivo para importação.")

    log.info("[IMPORTAÇÃO] Lendo planilhas...")

    clientes: list[Linha] | None = None
    if arquivo_clientes is not None:
        linhas_clientes = ler_clientes(arquivo_clientes)
        if not linhas_clientes:
            raise ErroImportacao("O arquivo de clientes está vazio.")
        clientes = montar_clientes(linhas_clientes)

    pedidos: list[Linha] | None = None
    if arquivo_pedidos is not None:
        linhas_pedidos = ler_pedidos(arquivo_pedidos)
        if not linhas_pedidos:
            raise ErroImportacao("O arquivo de pedidos está vazio.")

        base_clientes = clientes
        if base_clientes is None:
            base_clientes = repo.listar_clientes()
            if not base_clientes:
                raise ErroImportacao(
                    "Não há clientes cadastrados. Importe clientes antes de pedidos."
                )

        nomes = {normalizar_texto(c.get("short_name")) for c in base_clientes}
        exemplos = pedidos_sem_cliente(linhas_pedidos, nomes)
        if exemplos:
            raise ErroImportacao(
                "Alguns pedidos não possuem cliente correspondente: "
                + ", ".join(exemplos)
            )
        pedidos = montar_pedidos(linhas_pedidos, base_clientes)

    # pedidos dependem de clientes: esvazia pedidos antes
    if pedidos is not None:
        repo.limpar_pedidos()
    if clientes is not None:
        repo.limpar_clientes()
        repo.inserir_clientes(clientes)
    if pedidos is not None:
        repo.inserir_pedidos(pedidos)
    repo.persistir()

    resultado = {
        "clientes": len(clientes) if clientes is not None else None,
        "pedidos": len(pedidos) if pedidos is not None else None,
    }
    log.info(
        "  Importados: %s cliente(s), %s pedido(s)",
        resultado["clientes"] if resultado["clientes"] is not None else "-",
        resultado["pedidos"] if resultado["pedidos"] is not None else "-",
    )
    return resultado


# ===========================================================================
# Entrypoint standalone: python -m roteirizacao.importacao
# ===========================================================================


def _build_arg_parser():  # type: ignore[return]
    import argparse

    parser = argparse.ArgumentParser(
        prog="python -m roteirizacao.importacao",
        description="[IMPORTAÇÃO] Importa planilhas de clientes e/ou pedidos.",
    )
    parser.add_argument("--clientes", type=Path, default=None, metavar="ARQ")
    parser.add_argument("--pedidos", type=Path, default=None, metavar="ARQ")
    parser.add_argument(
        "--destino",
        type=Path,
        default=DATA_DIR,
        metavar="DIR",
        help=f"Diretório de dados do backend local (padrão: {DATA_DIR})",
    )
    return parser


if __name__ == "__main__":
    import sys

    from roteirizacao.armazenamento import criar_repositorio

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    args = _build_arg_parser().parse_args()
    try:
        importar_clientes_e_pedidos(
            criar_repositorio(args.destino),
            arquivo_clientes=args.clientes,
            arquivo_pedidos=args.pedidos,
        )
    except ErroImportacao as e:
        log.error("%s", e)
        sys.exit(1)
    sys.exit(0)
