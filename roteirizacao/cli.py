"""
CLI unificado da roteirização de entregas.

Subcomandos disponíveis::

    roteirizacao importar       [--clientes ARQ] [--pedidos ARQ]
    roteirizacao geocodificar   [--limite N] [--retentar-falhas] [--reset-cache --confirmar]
    roteirizacao transportadora CLIENTE [--endereco ...] [--cidade ...] [--uf ..]
                                [--cep ...] [--desativar] [--sem-geocodificar]
    roteirizacao buscar         CONSULTA [--limite N]
    roteirizacao rota           [filtros] [--agrupar-por X] [--grupo CHAVE ...]
                                [--excluir ID ...] [--ponto LAT LON] [--otimizar]
                                [--opcao N] [--nome NOME] [--salvar]
    roteirizacao rotas          [--remover ID] [--exportar ID]
    roteirizacao status
    roteirizacao limpar         [--pedidos] [--tudo --confirmar]
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from roteirizacao.config import DATA_DIR, MAPA_HTML, SAIDA_DIR

log = logging.getLogger(__name__)


# ===========================================================================
# Logging
# ===========================================================================


def _setup_logging(verbose: bool = False) -> None:
    """Configura logging da CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _repositorio(args: argparse.Namespace) -> Any:
    from roteirizacao.armazenamento import criar_repositorio

    return criar_repositorio(Path(getattr(args, "destino", DATA_DIR)))


# ===========================================================================
# Subcomando: importar
# ===========================================================================


def cmd_importar(args: argparse.Namespace) -> int:
    """Importa planilhas de clientes e/ou pedidos."""
    from roteirizacao.armazenamento import ErroArmazenamento
    from roteirizacao.importacao import ErroImportacao, importar_clientes_e_pedidos

    log.info("=" * 60)
    log.info("Importação de clientes e pedidos")
    log.info("=" * 60)

    try:
        resultado = importar_clientes_e_pedidos(
            _repositorio(args),
            arquivo_clientes=Path(args.clientes) if args.clientes else None,
            arquivo_pedidos=Path(args.pedidos) if args.pedidos else None,
        )
    except (ErroImportacao, ErroArmazenamento) as exc:
        log.error("Importação falhou: %s", exc)
        return 1

    if resultado["clientes"] is not None:
        print(f"Clientes importados: {resultado['clientes']}")
    if resultado["pedidos"] is not None:
        print(f"Pedidos importados:  {resultado['pedidos']}")
    return 0


# ===========================================================================
# Subcomando: geocodificar
# ===========================================================================


def cmd_geocodificar(args: argparse.Namespace) -> int:
    """Geocodifica clientes e pedidos pendentes."""
    from roteirizacao.armazenamento import ErroArmazenamento
    from roteirizacao.geocodificacao import geocodificar_pendentes

    repo = _repositorio(args)

    if args.reset_cache:
        if not args.confirmar:
            print(
                "ATENÇÃO: --reset-cache descarta o cache de geocodificação.\n"
                "         Adicione --confirmar para prosseguir.",
                file=sys.stderr,
            )
            return 1
        backup = repo.resetar_cache()
        if backup:
            print(f"Backup do cache: {backup}")

    log.info("=" * 60)
    log.info("Geocodificação de clientes e pedidos")
    log.info("=" * 60)

    try:
        resumo = geocodificar_pendentes(
            repo, limite=args.limite, retentar_falhas=args.retentar_falhas
        )
    except ErroArmazenamento as exc:
        log.error("Geocodificação interrompida: %s", exc)
        return 1

    cli, ped = resumo["clientes"], resumo["pedidos"]
    print(
        f"Clientes: {cli['geocodificados']}/{cli['total']} geocodificados"
        f" ({cli['falhas']} falha(s), {cli['do_cache']} do cache)"
    )
    print(
        f"Pedidos:  {ped['geocodificados']}/{ped['total']} geocodificados"
        f" ({ped['falhas']} falha(s), {ped['reaproveitados_do_cliente']} do cliente,"
        f" {ped['do_cache']} do cache)"
    )
    return 0


# ===========================================================================
# Subcomando: transportadora
# ===========================================================================


def cmd_transportadora(args: argparse.Namespace) -> int:
    """Cadastra (ou desativa) a transportadora de um cliente e a geocodifica."""
    from roteirizacao.armazenamento import ErroArmazenamento
    from roteirizacao.geocodificacao import (
        ErroGeocodificacao,
        geocodificar_transportadora,
        salvar_transportadora,
    )
    from roteirizacao.normalizacao import normalizar_texto

    repo = _repositorio(args)
    alvo = normalizar_texto(args.cliente)
    cliente = next(
        (c for c in repo.listar_clientes() if normalizar_texto(c.get("short_name")) == alvo),
        None,
    )
    if cliente is None:
        log.error("Cliente não encontrado: '%s'", args.cliente)
        return 1

    usar = not args.desativar
    try:
        atualizado = salvar_transportadora(
            repo,
            cliente,
            usar,
            endereco=args.endereco,
            cidade=args.cidade,
            uf=args.uf,
            cep=args.cep,
        )
        if args.sem_geocodificar:
            repo.persistir()
            print(f"Transportadora de '{cliente['short_name']}' salva.")
            return 0
        coords, _, origem = geocodificar_transportadora(
            repo, atualizado, retentar_falhas=args.retentar_falhas
        )
    except ValueError as exc:
        log.error("Dados de transportadora inválidos: %s", exc)
        return 1
    except (ErroGeocodificacao, ErroArmazenamento) as exc:
        log.error("%s", exc)
        return 1

    if not usar:
        print(f"Transportadora de '{cliente['short_name']}' desativada.")
    elif coords:
        print(
            f"Transportadora de '{cliente['short_name']}': "
            f"{coords[0]:.6f}, {coords[1]:.6f} ({origem})"
        )
    return 0


# ===========================================================================
# Subcomando: buscar
# ===========================================================================


def cmd_buscar(args: argparse.Namespace) -> int:
    """Busca endereços por texto livre (Nominatim, Brasil)."""
    from roteirizacao.geocodificacao import buscar_endereco

    resultados = buscar_endereco(args.consulta, limite=args.limite)
    if not resultados:
        print("Nenhum endereço encontrado.")
        return 1
    for i, r in enumerate(resultados, start=1):
        print(f"{i:>2}. {r['lat']:.6f}, {r['lon']:.6f}  {r['endereco']}")
    return 0


# ===========================================================================
# Subcomando: rota
# ===========================================================================


def _imprimir_opcoes(rotas: list[dict[str, Any]], usou_fallback: bool) -> None:
    from roteirizacao.normalizacao import formatar_numero

    origem = "OSRM" if usou_fallback else "OpenRouteService"
    print(f"\nOpções de rota ({origem}):")
    for i, opcao in enumerate(rotas):
        print(
            f"  [{i}] {opcao.get('nome', ''):<28} "
            f"{formatar_numero(opcao.get('distancia_total', 0)):>10} km  "
            f"{formatar_numero(opcao.get('duracao_total', 0), casas=0):>6} min"
        )


def _imprimir_grupos(
    grupos: dict[str, list[dict[str, Any]]], totais: dict[str, float]
) -> None:
    from urllib.parse import unquote

    from roteirizacao.normalizacao import formatar_numero

    print(f"\n{'Grupo':<50}  Pedidos")
    print("-" * 60)
    for chave, pedidos in grupos.items():
        rotulo = " / ".join(unquote(p) for p in chave.split("::")[1:])
        print(f"{rotulo:<50}  {len(pedidos):>7}")
    print(
        f"\nSelecionado: produzido {formatar_numero(totais['produzido_kg'])} kg, "
        f"embalado {formatar_numero(totais['embalado_kg'])} kg"
    )


def _exportar_saidas(
    args: argparse.Namespace,
    nome: str,
    opcao: dict[str, Any],
    pontos: list[dict[str, Any]],
) -> None:
    from roteirizacao.exportacao import exportar_rota_excel
    from roteirizacao.mapa import gerar_mapa_rota

    if not args.sem_excel:
        saida = exportar_rota_excel(nome, opcao, pontos, destino=Path(args.saida))
        print(f"Relatório: {saida}")
    if not args.sem_mapa:
        html = gerar_mapa_rota(pontos, opcao, output_path=Path(args.mapa))
        print(f"Mapa:      {html}")


def cmd_rota(args: argparse.Namespace) -> int:
    """Seleciona pedidos, monta os pontos e calcula a rota."""
    from roteirizacao.armazenamento import ErroArmazenamento
    from roteirizacao.geocodificacao import endereco_reverso
    from roteirizacao.pontos import (
        adicionar_ponto,
        adicionar_pontos,
        agrupar_pedidos,
        criar_lista_pontos,
        enriquecer_pedidos,
        filtrar_pedidos,
        garantir_partida,
        metricas_da_rota,
        pontos_de_entrega,
        totais_selecionados,
    )
    from roteirizacao.roteamento import calcular_rotas, otimizar_rota

    repo = _repositorio(args)
    pedidos = filtrar_pedidos(
        enriquecer_pedidos(repo.listar_pedidos()),
        cliente=args.cliente or "",
        nr_pedido=args.nr_pedido or "",
        data_entrega=args.data_entrega or "",
        rota=args.rota or "",
        produzido_positivo=args.produzido,
        embalado_positivo=args.embalado,
    )
    grupos = agrupar_pedidos(pedidos, por=args.agrupar_por)

    selecionados = args.grupo or list(grupos)
    desconhecidos = [g for g in selecionados if g not in grupos]
    if desconhecidos:
        log.error("Grupo(s) inexistente(s): %s", ", ".join(desconhecidos))
        return 1

    _imprimir_grupos(
        {g: grupos[g] for g in selecionados},
        totais_selecionados(grupos, selecionados, args.excluir),
    )
    if args.listar_grupos:
        return 0

    escolhidos = [p for g in selecionados for p in grupos[g]]
    try:
        entregas = pontos_de_entrega(escolhidos, excluidos=args.excluir)
    except ValueError as exc:
        log.error("%s", exc)
        return 1

    pontos = adicionar_pontos(criar_lista_pontos(), entregas)
    for lat, lon in args.ponto or []:
        pontos = adicionar_ponto(pontos, lat, lon, endereco_reverso(lat, lon))

    log.info("=" * 60)
    log.info("Cálculo de rota: %d parada(s)", len(pontos) - 1)
    log.info("=" * 60)

    if args.otimizar:
        resultado = otimizar_rota(pontos)
    else:
        resultado = calcular_rotas(pontos)
    if not resultado or not resultado["rotas"]:
        log.error("Não foi possível calcular a rota.")
        return 1

    pontos = garantir_partida(resultado["waypoints"])
    _imprimir_opcoes(resultado["rotas"], resultado["usou_fallback"])

    if not 0 <= args.opcao < len(resultado["rotas"]):
        log.error("Opção de rota inexistente: %d", args.opcao)
        return 1
    opcao = resultado["rotas"][args.opcao]
    nome = args.nome or f"Rota {datetime.now():%d-%m-%Y %H-%M}"

    if args.salvar:
        try:
            salva = repo.salvar_rota(nome, opcao, pontos, metricas_da_rota(opcao, pontos))
            repo.persistir()
        except ErroArmazenamento as exc:
            log.error("Falha ao salvar a rota: %s", exc)
            return 1
        print(f"Rota salva: {salva['id']}")

    _exportar_saidas(args, nome, opcao, pontos)
    return 0


# ===========================================================================
# Subcomando: rotas (rotas salvas)
# ===========================================================================


def cmd_rotas(args: argparse.Namespace) -> int:
    """Lista, remove ou reexporta rotas salvas."""
    from roteirizacao.armazenamento import ErroArmazenamento
    from roteirizacao.normalizacao import formatar_numero

    repo = _repositorio(args)

    if args.remover:
        try:
            repo.remover_rota(args.remover)
            repo.persistir()
        except ErroArmazenamento as exc:
            log.error("%s", exc)
            return 1
        print(f"Rota removida: {args.remover}")
        return 0

    rotas = repo.listar_rotas()

    if args.exportar:
        salva = next((r for r in rotas if r.get("id") == args.exportar), None)
        if salva is None:
            log.error("Rota não encontrada: %s", args.exportar)
            return 1
        _exportar_saidas(args, salva["nome"], salva.get("rota") or {}, salva["waypoints"])
        return 0

    if not rotas:
        print("Nenhuma rota salva.")
        return 0

    print(f"\n{'Id':<38}  {'Nome':<30}  {'Distância':>12}  {'Paradas':>7}")
    print("-" * 94)
    for r in rotas:
        metricas = r.get("metricas") or {}
        print(
            f"{r['id']:<38}  {str(r.get('nome', '')):<30}  "
            f"{formatar_numero(metricas.get('distancia_total', 0)):>9} km  "
            f"{max(len(r.get('waypoints') or []) - 1, 0):>7}"
        )
    print()
    return 0


# ===========================================================================
# Subcomando: status
# ===========================================================================


def _fmt_mod(path: Path) -> str:
    """Formata timestamp de modificação de um arquivo."""
    ts = path.stat().st_mtime
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def _fmt_size(path: Path) -> str:
    """Formata tamanho de arquivo de forma legível."""
    n = path.stat().st_size
    if n >= 1024 * 1024:
        return f"{n / 1024 / 1024:.1f} MB"
    if n >= 1024:
        return f"{n / 1024:.1f} KB"
    return f"{n} B"


def _count_csv_rows(path: Path) -> int:
    """Conta linhas de um CSV sem ler para memória."""
    with open(path, "rb") as fh:
        return max(0, sum(1 for _ in fh) - 1)  # -1 para cabeçalho


def _contar_geocodificados(registros: list[dict[str, Any]]) -> int:
    return sum(
        1
        for r in registros
        if r.get("geocoded") and r.get("lat") is not None and r.get("lon") is not None
    )


def cmd_status(args: argparse.Namespace) -> int:
    """Exibe contagens de clientes/pedidos e o estado dos arquivos locais."""
    from roteirizacao.armazenamento import ErroArmazenamento, RepositorioLocal

    repo = _repositorio(args)
    try:
        clientes = repo.listar_clientes()
        pedidos = repo.listar_pedidos()
        rotas = repo.listar_rotas()
    except ErroArmazenamento as exc:
        log.error("%s", exc)
        return 1

    print(f"\n{'Registro':<16}  {'Total':>7}  {'Geocodificados':>14}")
    print("-" * 42)
    print(f"{'Clientes':<16}  {len(clientes):>7}  {_contar_geocodificados(clientes):>14}")
    print(f"{'Pedidos':<16}  {len(pedidos):>7}  {_contar_geocodificados(pedidos):>14}")
    print(f"{'Rotas salvas':<16}  {len(rotas):>7}  {'—':>14}")

    if isinstance(repo, RepositorioLocal):
        artefatos: list[tuple[str, Path, bool]] = [
            # (nome, caminho, contar_linhas)
            (repo.clientes_path.name, repo.clientes_path, False),
            (repo.pedidos_path.name, repo.pedidos_path, False),
            (repo.rotas_path.name, repo.rotas_path, False),
            (repo.cache_path.name, repo.cache_path, True),
        ]
        print(f"\n{'Arquivo':<22}  {'Status':<8}  {'Tamanho':>10}  {'Modificado':<22}  Extra")
        print("-" * 80)
        for nome, path, contar in artefatos:
            if not path.exists():
                print(f"{nome:<22}  {'ausente':<8}  {'—':>10}  —")
                continue
            extra = f"  {_count_csv_rows(path)} linhas" if contar else ""
            print(
                f"{nome:<22}  {'ok':<8}  {_fmt_size(path):>10}  {_fmt_mod(path):<22}{extra}"
            )

    print()
    return 0


# ===========================================================================
# Subcomando: limpar
# ===========================================================================


def cmd_limpar(args: argparse.Namespace) -> int:
    """Remove pedidos (--tudo inclui clientes e cache; requer --confirmar)."""
    from roteirizacao.armazenamento import ErroArmazenamento

    if not args.pedidos and not args.tudo:
        print("Nada para remover. Use --pedidos ou --tudo.")
        return 0

    if args.tudo and not args.confirmar:
        print(
            "ATENÇÃO: --tudo remove clientes, pedidos e o cache de geocodificação,\n"
            "         que pode levar horas para reconstruir. Adicione --confirmar\n"
            "         para prosseguir.",
            file=sys.stderr,
        )
        return 1

    repo = _repositorio(args)
    try:
        repo.limpar_pedidos()
        if args.tudo:
            repo.limpar_clientes()
            backup = repo.resetar_cache()
            if backup:
                print(f"Backup do cache: {backup}")
        repo.persistir()
    except ErroArmazenamento as exc:
        log.error("%s", exc)
        return 1

    print("Clientes, pedidos e cache removidos." if args.tudo else "Pedidos removidos.")
    return 0


# ===========================================================================
# Parser argparse
# ===========================================================================


def _build_parser() -> argparse.ArgumentParser:
    """Constrói o parser principal com todos os subcomandos."""
    parser = argparse.ArgumentParser(
        prog="roteirizacao",
        description="Roteirização de entregas: importação, geocodificação e rotas",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Exemplos:
  roteirizacao importar --clientes clientes.xlsx --pedidos pedidos.xlsx
  roteirizacao geocodificar --limite 10             Geocodifica 10 registros (teste)
  roteirizacao geocodificar --retentar-falhas       Reconsulta falhas gravadas no cache
  roteirizacao transportadora ACME --cep 13000-000
  roteirizacao buscar "Av. Paulista, 1000"
  roteirizacao rota --rota "Rota 1" --otimizar --salvar
  roteirizacao rota --agrupar-por Cliente --listar-grupos
  roteirizacao rotas                               Lista rotas salvas
  roteirizacao status                              Contagens e arquivos
  roteirizacao limpar --tudo --confirmar           Remove tudo incluindo cache
""",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Exibe logs de depuração (DEBUG)"
    )
    parser.add_argument(
        "--destino",
        default=str(DATA_DIR),
        metavar="DIR",
        help=f"Diretório de dados do backend local (padrão: {DATA_DIR})",
    )

    sub = parser.add_subparsers(dest="comando", required=True, metavar="COMANDO")

    # ------------------------------------------------------------- importar
    p_imp = sub.add_parser(
        "importar",
        help="Importa planilhas de clientes e pedidos",
        description=(
            "Importa clientes e/ou pedidos (.xlsx, .xls ou .csv). "
            "A importação substitui os registros existentes."
        ),
    )
    p_imp.add_argument("--clientes", metavar="ARQ", help="Planilha de clientes")
    p_imp.add_argument("--pedidos", metavar="ARQ", help="Planilha de pedidos")

    # --------------------------------------------------------- geocodificar
    p_geo = sub.add_parser(
        "geocodificar",
        help="Geocodifica clientes e pedidos pendentes",
        description=(
            "Geocodifica clientes e depois pedidos, com cache e cascata "
            "CEP → endereço (OpenRouteService, Nominatim)."
        ),
    )
    p_geo.add_argument(
        "--limite",
        type=int,
        default=None,
        metavar="N",
        help="Processa no máximo N registros por fase (útil para testes)",
    )
    p_geo.add_argument(
        "--retentar-falhas",
        action="store_true",
        help="Ignora falhas gravadas no cache e consulta os provedores de novo",
    )
    p_geo.add_argument(
        "--reset-cache",
        action="store_true",
        help="Faz backup do cache e reinicia a geocodificação do zero",
    )
    p_geo.add_argument(
        "--confirmar",
        action="store_true",
        help="Confirma o --reset-cache (obrigatório)",
    )

    # ------------------------------------------------------- transportadora
    p_tr = sub.add_parser(
        "transportadora",
        help="Cadastra a transportadora de um cliente",
        description=(
            "Grava o endereço da transportadora de um cliente, geocodifica e "
            "propaga as coordenadas para os pedidos dele."
        ),
    )
    p_tr.add_argument("cliente", metavar="CLIENTE", help="Nome curto do cliente")
    p_tr.add_argument("--endereco", help="Endereço da transportadora")
    p_tr.add_argument("--cidade", help="Cidade da transportadora")
    p_tr.add_argument("--uf", help="Estado (duas letras)")
    p_tr.add_argument("--cep", help="CEP da transportadora")
    p_tr.add_argument(
        "--desativar",
        action="store_true",
        help="Desativa a transportadora (volta a usar o endereço do cliente)",
    )
    p_tr.add_argument(
        "--sem-geocodificar",
        action="store_true",
        help="Apenas grava o cadastro, sem geocodificar",
    )
    p_tr.add_argument(
        "--retentar-falhas",
        action="store_true",
        help="Ignora falha gravada no cache para esta transportadora",
    )

    # --------------------------------------------------------------- buscar
    p_bus = sub.add_parser(
        "buscar",
        help="Busca endereços por texto livre",
        description="Busca endereços no Brasil via Nominatim.",
    )
    p_bus.add_argument("consulta", metavar="CONSULTA", help="Texto da busca")
    p_bus.add_argument(
        "--limite", type=int, default=5, metavar="N", help="Máximo de resultados (padrão: 5)"
    )

    # ----------------------------------------------------------------- rota
    p_rota = sub.add_parser(
        "rota",
        help="Monta e calcula uma rota a partir dos pedidos",
        description=(
            "Filtra e agrupa pedidos, gera os pontos de entrega, calcula as "
            "opções de rota e exporta relatório Excel e mapa HTML."
        ),
    )
    p_rota.add_argument("--cliente", help="Filtro por cliente (substring)")
    p_rota.add_argument("--nr-pedido", dest="nr_pedido", help="Filtro por número do pedido")
    p_rota.add_argument(
        "--data-entrega", dest="data_entrega", help="Filtro por data (dd/mm/aaaa, parcial)"
    )
    p_rota.add_argument("--rota", help="Filtro por rota (substring)")
    p_rota.add_argument(
        "--produzido", action="store_true", help="Apenas pedidos com Produzido Kg > 0"
    )
    p_rota.add_argument(
        "--embalado", action="store_true", help="Apenas pedidos com Embalado Kg > 0"
    )
    p_rota.add_argument(
        "--agrupar-por",
        dest="agrupar_por",
        default="Rota",
        choices=["Rota", "Cliente", "Nr Pedido"],
        help="Agrupamento dos pedidos (padrão: Rota)",
    )
    p_rota.add_argument(
        "--grupo",
        action="append",
        default=[],
        metavar="CHAVE",
        help="Seleciona um grupo pela chave (repetível; padrão: todos)",
    )
    p_rota.add_argument(
        "--excluir",
        action="append",
        default=[],
        metavar="ID",
        help="Desmarca um pedido pelo id (repetível)",
    )
    p_rota.add_argument(
        "--listar-grupos",
        action="store_true",
        help="Apenas lista os grupos e totais selecionados",
    )
    p_rota.add_argument(
        "--ponto",
        nargs=2,
        type=float,
        action="append",
        metavar=("LAT", "LON"),
        help="Adiciona um ponto avulso (repetível)",
    )
    p_rota.add_argument(
        "--otimizar", action="store_true", help="Otimiza a ordem de visita"
    )
    p_rota.add_argument(
        "--opcao",
        type=int,
        default=0,
        metavar="N",
        help="Índice da opção de rota exportada/salva (padrão: 0)",
    )
    p_rota.add_argument("--nome", help="Nome da rota (padrão: data e hora)")
    p_rota.add_argument("--salvar", action="store_true", help="Salva a rota calculada")
    _add_saida_args(p_rota)

    # ---------------------------------------------------------------- rotas
    p_rotas = sub.add_parser(
        "rotas",
        help="Lista, remove ou reexporta rotas salvas",
        description="Gerencia as rotas salvas.",
    )
    grupo_rotas = p_rotas.add_mutually_exclusive_group()
    grupo_rotas.add_argument("--remover", metavar="ID", help="Remove a rota salva")
    grupo_rotas.add_argument(
        "--exportar", metavar="ID", help="Gera relatório e mapa da rota salva"
    )
    _add_saida_args(p_rotas)

    # --------------------------------------------------------------- status
    sub.add_parser(
        "status",
        help="Exibe contagens e estado dos arquivos",
        description="Contagens de clientes, pedidos e rotas; arquivos do backend local.",
    )

    # --------------------------------------------------------------- limpar
    p_lim = sub.add_parser(
        "limpar",
        help="Remove dados importados",
        description=(
            "Remove pedidos. --tudo inclui clientes e o cache de "
            "geocodificação (irreversível sem re-geocodificação)."
        ),
    )
    p_lim.add_argument("--pedidos", action="store_true", help="Remove os pedidos")
    p_lim.add_argument(
        "--tudo",
        action="store_true",
        help="Remove também clientes e cache (lento de reconstruir!)",
    )
    p_lim.add_argument(
        "--confirmar",
        action="store_true",
        help="Confirma a remoção quando --tudo está ativo (obrigatório)",
    )

    return parser


def _add_saida_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--saida",
        default=str(SAIDA_DIR),
        metavar="DIR",
        help=f"Diretório do relatório Excel (padrão: {SAIDA_DIR})",
    )
    p.add_argument(
        "--mapa",
        default=str(MAPA_HTML),
        metavar="PATH",
        help=f"Caminho de saída do mapa HTML (padrão: {MAPA_HTML})",
    )
    p.add_argument("--sem-excel", action="store_true", help="Não gera o relatório Excel")
    p.add_argument("--sem-mapa", action="store_true", help="Não gera o mapa HTML")


# ===========================================================================
# Dispatch e entry point
# ===========================================================================

_HANDLER_MAP: dict[str, Callable[[argparse.Namespace], int]] = {
    "importar": cmd_importar,
    "geocodificar": cmd_geocodificar,
    "transportadora": cmd_transportadora,
    "buscar": cmd_buscar,
    "rota": cmd_rota,
    "rotas": cmd_rotas,
    "status": cmd_status,
    "limpar": cmd_limpar,
}


def main() -> None:
    """Entry point público: ``python -m roteirizacao`` e o script ``roteirizacao``."""
    parser = _build_parser()
    args = parser.parse_args()
    _setup_logging(verbose=args.verbose)

    handler = _HANDLER_MAP.get(args.comando)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    sys.exit(handler(args))
