"""Management CLI tests against a throwaway SQLite file."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from sellerboard import cli
from sellerboard.models.seller_onboarding import SellerOnboarding


@pytest.fixture
def sync_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setattr(cli.settings, "database_url_sync", url)
    return url


@pytest.mark.unit
class TestCli:
    def test_init_db_creates_table(self, sync_url, capsys):
        cli.init_db()
        assert "seller_onboarding" in capsys.readouterr().out

    def test_list_onboarding_shows_state(self, sync_url, capsys):
        cli.init_db()
        with Session(create_engine(sync_url)) as session:
            session.add(SellerOnboarding(
                shop_name="Acme Goods",
                country="US",
                state="CA",
                postal_code="94000",
                address1="1 Main St",
                city="Metropolis",
                phone="555-0100",
                progress=50,
            ))
            session.commit()
        capsys.readouterr()

        cli.list_onboarding()
        out = capsys.readouterr().out
        assert "awaiting_shipping" in out
        assert "Acme Goods" in out
        assert "1 record(s)" in out
