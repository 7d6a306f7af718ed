import os
from pathlib import Path

import pytest

# Flask アプリを import する前にテスト専用の SQLite DB を設定する
TEST_DB_PATH = Path(__file__).resolve().parent / "pytest_kyuyo.db"
os.environ["FLASK_ENV"] = "testing"
os.environ["SECRET_KEY"] = "test_secret_key"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH.as_posix()}"

from app import app as _flask_app, db  # noqa: E402


@pytest.fixture
def flask_app():
    _flask_app.config["TESTING"] = True

    with _flask_app.app_context():
        db.session.remove()
        db.drop_all()
        db.create_all()
        yield _flask_app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(flask_app):
    with flask_app.test_client() as client:
        yield client


@pytest.fixture
def employee(flask_app):
    """デモデータ (E001 山田 太郎 と料率表・税額表) を投入して従業員を返す"""
    from scripts.seed_demo_data import seed_demo_data

    return seed_demo_data()


@pytest.fixture
def demo_trip(flask_app):
    """ミッション・写真付きの旅のしおりデモを投入して Trip を返す"""
    from scripts.seed_demo_data import seed_demo_trip

    return seed_demo_trip()
