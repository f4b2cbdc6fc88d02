"""
Pacote de roteirização de entregas: importação, geocodificação e rotas.

Módulos disponíveis (alguns executáveis via ``python -m roteirizacao.<modulo>``):

- ``roteirizacao.config``         — constantes, caminhos e credenciais
- ``roteirizacao.normalizacao``   — normalização de texto, CEP e números
- ``roteirizacao.importacao``     — leitura das planilhas de clientes e pedidos
- ``roteirizacao.armazenamento``  — backends local (JSON/CSV) e Supabase
- ``roteirizacao.geocodificacao`` — geocodificação em cascata com cache
- ``roteirizacao.pontos``         — seleção de pedidos e pontos da rota
- ``roteirizacao.roteamento``     — rotas via OpenRouteService/OSRM
- ``roteirizacao.exportacao``     — relatório Excel da rota
- ``roteirizacao.mapa``           — mapa HTML da rota (Folium)
"""

__version__ = "0.1.0"
