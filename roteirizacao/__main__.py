"""
Ponto de entrada de ``python -m roteirizacao``.

Delega imediatamente para :func:`roteirizacao.cli.main`, que constrói o
parser argparse e despacha para o subcomando correto.

Uso::

    python -m roteirizacao --help
    python -m roteirizacao importar --clientes clientes.xlsx --pedidos pedidos.xlsx
    python -m roteirizacao status
"""

from roteirizacao.cli import main

if __name__ == "__main__":
    main()
