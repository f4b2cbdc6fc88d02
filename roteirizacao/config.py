"""
Constantes e caminhos centralizados para o pacote de roteirização.

Todas as demais etapas do pipeline importam daqui; não definir constantes
localmente.  Chaves de API e credenciais são lidas de variáveis de ambiente no
momento do uso (ver :func:`ors_api_key` e :func:`credenciais_supabase`).
"""

import os
from pathlib import Path

# ===========================================================================
# Caminhos
# ===========================================================================

#: Diretório de dados local (não commitado)
DATA_DIR: Path = Path("data/roteirizacao")

#: Clientes importados (backend local)
CLIENTES_JSON: Path = DATA_DIR / "clientes.json"

#: Pedidos importados (backend local)
PEDIDOS_JSON: Path = DATA_DIR / "pedidos.json"

#: Rotas salvas (backend local)
ROTAS_JSON: Path = DATA_DIR / "rotas_salvas.json"

#: Cache de geocodificação: só append; última entrada por chave vence
GEOCACHE_CSV: Path = DATA_DIR / "geocache.csv"

#: Diretório de relatórios Excel e mapas HTML
SAIDA_DIR: Path = Path("saida")

#: Mapa da rota gerado pelo Folium
MAPA_HTML: Path = SAIDA_DIR / "rota.html"

# ===========================================================================
# URLs e HTTP
# ===========================================================================

ORS_GEOCODE_URL: str = "https://api.openrouteservice.org/geocode/search"
ORS_DIRECTIONS_URL: str = (
    "https://api.openrouteservice.org/v2/directions/driving-car/geojson"
)
#: O endpoint de otimização não usa o prefixo /v2
ORS_OPTIMIZATION_URL: str = "https://api.openrouteservice.org/optimization"

OSRM_BASE_URL: str = "https://router.project-osrm.org"

#: User-Agent identificador para o Nominatim (ToS exige string descritiva)
NOMINATIM_USER_AGENT: str = "RoteirizacaoEntregas/1.0"

HEADERS: dict[str, str] = {
    "User-Agent": NOMINATIM_USER_AGENT,
    "Accept": "application/json",
    "Accept-Language": "pt-BR,pt;q=0.9",
}

#: Timeout (s) das chamadas HTTP a ORS/OSRM
HTTP_TIMEOUT: float = 30.0

# ===========================================================================
# Geocodificação
# ===========================================================================

#: Delay mínimo entre chamadas a cada provedor (rate limit dos serviços)
GEOCODE_DELAY: float = 0.9

#: Caixa envolvente do Brasil; coordenadas fora dela são descartadas
BRASIL_LIMITES: dict[str, float] = {
    "min_lat": -34.0,
    "max_lat": 6.0,
    "min_lon": -74.0,
    "max_lon": -28.0,
}

#: CEP usado por rotas de entrega interna sem CEP informado
CEP_PADRAO: str = "13054-703"

#: Rotas com coordenadas predefinidas (chave: rota normalizada) → (lat, lon)
ROTAS_COORDENADAS_FIXAS: dict[str, tuple[float, float]] = {
    "ENTREGAS ZINCOLOR": (-22.989473229980398, -47.11499624654793),
}

#: Rotas com CEP padrão quando o pedido não informa CEP
ROTAS_CEP_PADRAO: dict[str, str] = {
    "ENTREGAS ZINCOLOR": CEP_PADRAO,
}

# ===========================================================================
# Importação
# ===========================================================================

#: Colunas de data da planilha de pedidos convertidas para ISO (YYYY-MM-DD)
COLUNAS_DATA_PEDIDO: tuple[str, ...] = (
    "Data Implant",
    "Data Entrega",
    "Data Ent.Orig",
    "Data Prog",
    "Data Ult Fat",
)

#: Colunas em que o CEP do pedido pode aparecer
COLUNAS_CEP_PEDIDO: tuple[str, ...] = ("CEP", "Cep", "CEP Entrega")

#: Colunas de peso/quantidade; no CSV são convertidas para número na leitura
COLUNAS_NUMERICAS_PEDIDO: tuple[str, ...] = ("Produzido Kg", "Embalado Kg", "Embalado Pc")

# ===========================================================================
# Rota
# ===========================================================================

#: Ponto de partida fixo (Tecnoperfil Alumínio), sempre o primeiro waypoint
PONTO_PARTIDA: dict[str, object] = {
    "id": "company-start",
    "lat": -22.874799730732537,
    "lon": -47.1777205465513,
    "endereco": "Tecnoperfil Alumínio (Ponto de Partida)",
    "ordem": 0,
}

# ===========================================================================
# Credenciais (variáveis de ambiente)
# ===========================================================================


def ors_api_key() -> str:
    """Retorna a chave do OpenRouteService ou ``""`` quando não configurada."""
    return os.environ.get("ORS_API_KEY", "").strip()


def credenciais_supabase() -> tuple[str, str] | None:
    """Retorna ``(url, key)`` do Supabase, ou ``None`` se ausentes."""
    url = os.environ.get("SUPABASE_URL", "").strip()
    key = os.environ.get("SUPABASE_KEY", "").strip()
    if not url or not key:
        return None
    return url, key
