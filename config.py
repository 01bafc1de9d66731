import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _word_list(raw):
    return [w.strip() for w in raw.split(',') if w.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', '5000'))
    # Comma separated; '*' allows any origin
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    # Round start needs at least this many players, all ready
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '3'))
    ROUND_POINTS = int(os.environ.get('ROUND_POINTS', '100'))
    WORD_LIST = _word_list(os.environ.get('WORD_LIST', 'lion,tiger,elephant,giraffe,zebra'))
    # Secret role handed to the impostor; must not be one of WORD_LIST
    IMPOSTOR_ROLE = os.environ.get('IMPOSTOR_ROLE', 'Impostor')
    # Finished rounds kept in the state feed; 0 keeps all
    ROUND_HISTORY_LIMIT = int(os.environ.get('ROUND_HISTORY_LIMIT', '10'))
    # Optional: fixed seed for word/impostor picks (demos, reproducible games)
    RANDOM_SEED = os.environ.get('RANDOM_SEED')
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(BASE_DIR, 'uploads')
    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', str(8 * 1024 * 1024)))
