import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

class Config:
    """基本設定 (全環境共通)"""
    SECRET_KEY = os.environ.get('SECRET_KEY')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # 環境変数 DATABASE_URL があれば使用、なければローカル SQLite
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL',
        f"sqlite:///{os.path.join(BASE_DIR, 'kyuyo.db')}"
    )
    MAX_CONTENT_LENGTH = 4 * 1024 * 1024  # 4MB 制限 (CSV 取込を含む)
    JSON_AS_ASCII = False

    # ── 給与計算ポリシー ──
    OVERTIME_BASE_DIVISOR = 160          # 時間外単価算出用の月所定労働時間
    OVERTIME_MULTIPLIER = 1.25           # 時間外割増率
    RESIDENT_TAX_FALLBACK_RATE = 0.1     # 源泉履歴がない場合の住民税概算率
    RESIDENT_TAX_START_MONTH = 6         # 特別徴収の開始月 (6月)
    RESIDENT_TAX_PERIODS = 12            # 特別徴収の回数

    # ── 標準報酬月額の判定 ──
    STANDARD_REMUNERATION_MONTHS = 3     # 平均算出に使う月数
    MONTHLY_CHANGE_GRADE_GAP = 2         # 月額変更届の等級差基準
    ANNUAL_RECALCULATION_MONTH = 7       # 算定基礎届の対象月

    # ── 旅のしおり ──
    DEFAULT_UNLOCK_RADIUS_METERS = 120
    DEFAULT_HERO_IMAGE = '/memories/trip-hero-usj.jpg'

    # 計算・取込 API のレート制限
    CALCULATE_RATE_LIMIT = '30 per minute'
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')

    # ロギング設定
    @staticmethod
    def get_logging_config(log_dir):
        return {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'default': {
                    'format': '[%(asctime)s] %(levelname)s in %(module)s: %(message)s',
                }
            },
            'handlers': {
                'file': {
                    'class': 'logging.handlers.RotatingFileHandler',
                    'filename': os.path.join(log_dir, 'kyuyo.log'),
                    'maxBytes': 1024 * 1024 * 10, # 10MB
                    'backupCount': 5,
                    'formatter': 'default',
                    'encoding': 'utf-8'
                },
                'console': {
                    'class': 'logging.StreamHandler',
                    'formatter': 'default'
                }
            },
            'root': {
                'level': 'INFO',
                'handlers': ['file', 'console']
            }
        }

class DevelopmentConfig(Config):
    """開発環境設定"""
    DEBUG = True

class TestingConfig(Config):
    """テスト環境設定"""
    TESTING = True
    RATELIMIT_ENABLED = False

class ProductionConfig(Config):
    """本番環境設定"""
    DEBUG = False

    # 本番環境の必須値チェック
    def __init__(self):
        if not self.SECRET_KEY:
            raise RuntimeError("SECRET_KEY environment variable is not set")

# 環境変数に応じて設定クラスを選択
config_by_name = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
