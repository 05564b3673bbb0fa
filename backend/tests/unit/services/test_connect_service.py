import pytest

from homebridge.core.config import Settings
from homebridge.core.exceptions import PaymentProviderException, ValidationException
from homebridge.models import AgentProfile
from homebridge.services.connect_service import ConnectService, requirements_summary

SETTINGS_URL = "https://app.example.com/dashboard/agent/settings"


@pytest.fixture
def config():
    return Settings(stripe_secret_key="sk_test_connect", frontend_url="https://app.example.com/")


@pytest.fixture
def service(unit_db, gateway, config):
    gateway.create_connected_account.return_value = "acct_new"
    gateway.create_account_link.return_value = "https://connect.stripe.com/setup/e/acct_new"
    return ConnectService(unit_db, gateway, config=config)


class TestStartOnboarding:
    def test_creates_and_stores_account(self, unit_db, service, gateway, agent, agent_principal):
        result = service.start_onboarding(agent_principal)

        assert result == {"url": "https://connect.stripe.com/setup/e/acct_new"}
        gateway.create_connected_account.assert_called_once_with(
            agent_id=agent.id, email=agent_principal.email
        )
        gateway.create_account_link.assert_called_once_with(
            account_id="acct_new",
            link_type="account_onboarding",
            refresh_url=f"{SETTINGS_URL}?onboarding=retry",
            return_url=f"{SETTINGS_URL}?onboarding=done",
        )
        assert unit_db.get(AgentProfile, agent.id).stripe_account_id == "acct_new"

    def test_reuses_existing_account(self, service, gateway, connected_agent, agent_principal):
        service.start_onboarding(agent_principal)

        gateway.create_connected_account.assert_not_called()
        assert gateway.create_account_link.call_args.kwargs["account_id"] == connected_agent.stripe_account_id

    def test_keeps_paid_onboarding_fields(self, unit_db, service, agent, agent_principal):
        unit_db.add(AgentProfile(user_id=agent.id, onboarding_amount_cents=5000))
        unit_db.flush()

        service.start_onboarding(agent_principal)

        profile = unit_db.get(AgentProfile, agent.id)
        assert profile.stripe_account_id == "acct_new"
        assert profile.onboarding_amount_cents == 5000

    def test_stripe_failure_stores_nothing(self, unit_db, service, gateway, agent, agent_principal):
        gateway.create_connected_account.side_effect = PaymentProviderException()

        with pytest.raises(PaymentProviderException):
            service.start_onboarding(agent_principal)

        assert unit_db.get(AgentProfile, agent.id) is None


class TestUpdateLink:
    def test_requires_account(self, service, gateway, agent_principal):
        with pytest.raises(ValidationException) as exc_info:
            service.update_link(agent_principal)

        assert exc_info.value.code == "STRIPE_ACCOUNT_MISSING"
        gateway.create_account_link.assert_not_called()

    def test_update_link(self, service, gateway, connected_agent, agent_principal):
        assert service.update_link(agent_principal)["url"].startswith("https://connect.stripe.com/")
        assert gateway.create_account_link.call_args.kwargs["link_type"] == "account_update"


class TestAccountStatus:
    def test_not_connected(self, service, gateway, agent_principal):
        assert service.account_status(agent_principal) == {"connected": False}
        gateway.retrieve_account.assert_not_called()

    def test_stripe_not_configured(self, unit_db, gateway, connected_agent, agent_principal):
        service = ConnectService(unit_db, gateway, config=Settings(stripe_secret_key=""))

        assert service.account_status(agent_principal) == {"connected": False}

    def test_persists_flags(self, unit_db, service, gateway, connected_agent, agent_principal):
        gateway.retrieve_account.return_value = {
            "id": connected_agent.stripe_account_id,
            "payouts_enabled": True,
            "charges_enabled": False,
            "details_submitted": True,
            "requirements": {"currently_due": ["external_account", "tos_acceptance.date"]},
        }

        result = service.account_status(agent_principal)

        assert result == {
            "connected": True,
            "payouts_enabled": True,
            "charges_enabled": False,
            "details_submitted": True,
            "requirements": "external_account, tos_acceptance.date",
        }
        unit_db.refresh(connected_agent)
        assert connected_agent.payouts_enabled is True
        assert connected_agent.charges_enabled is False
        assert connected_agent.details_submitted is True


def test_requirements_fall_back_to_past_due():
    account = {"requirements": {"currently_due": [], "past_due": ["individual.dob.day"]}}

    assert requirements_summary(account) == "individual.dob.day"
    assert requirements_summary({"requirements": None}) is None
