import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///featchain.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Allowed browser origins for REST and Socket.IO (comma separated)
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
    ).split(',') if o.strip()]
    # Turn rules
    TURN_DURATION_SEC = int(os.environ.get('TURN_DURATION_SEC', '30'))
    MAX_ATTEMPTS_PER_TURN = int(os.environ.get('MAX_ATTEMPTS_PER_TURN', '2'))
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    GAME_CODE_LENGTH = int(os.environ.get('GAME_CODE_LENGTH', '6'))
    # Finished games older than this are dropped by the cleanup task (seconds)
    FINISHED_GAME_TTL_SEC = int(os.environ.get('FINISHED_GAME_TTL_SEC', '3600'))
    # External sources
    MUSICBRAINZ_BASE_URL = os.environ.get('MUSICBRAINZ_BASE_URL', 'https://musicbrainz.org/ws/2')
    WIKIDATA_SPARQL_URL = os.environ.get('WIKIDATA_SPARQL_URL', 'https://query.wikidata.org/sparql')
    HTTP_USER_AGENT = os.environ.get('HTTP_USER_AGENT', 'featchain/1.0.0 (https://github.com/featchain)')
    HTTP_TIMEOUT_SEC = float(os.environ.get('HTTP_TIMEOUT_SEC', '10'))
    HTTP_RETRY_ATTEMPTS = int(os.environ.get('HTTP_RETRY_ATTEMPTS', '3'))
    HTTP_RETRY_DELAY_SEC = float(os.environ.get('HTTP_RETRY_DELAY_SEC', '1.0'))
    # Solo runs start from one of these artists
    SEED_ARTISTS = [a.strip() for a in os.environ.get(
        'SEED_ARTISTS',
        'Booba,Kaaris,Damso,PNL,Nekfeu,Orelsan,Vald,Lomepal,SCH,Laylow,'
        'Ninho,Jul,Gims,Soprano,Bigflo & Oli,IAM,MC Solaar,Oxmo Puccino,La Fouine'
    ).split(',') if a.strip()]
    # Load popularity lookup tables into memory when the app starts
    PRELOAD_POPULARITY = os.environ.get('PRELOAD_POPULARITY', '1') == '1'
    # Optional: heartbeat interval for timer worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
