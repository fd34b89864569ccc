"""
Pytest configuration and fixtures.

Each environment gets its own SQLite file so isolation between production,
development and test databases is exercised for real.
"""
import os
import tempfile
from types import SimpleNamespace
from typing import Any, AsyncGenerator, Dict, Set

_DB_DIR = tempfile.mkdtemp(prefix="merchant-onboarding-tests-")

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/production.db"
os.environ["DEV_DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/development.db"
os.environ["TEST_DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/test.db"
os.environ["GLOBAL_DB_ENV"] = "development"
os.environ["DATABASE_AUTO_CREATE"] = "false"
os.environ["DATABASE_CONNECT_RETRIES"] = "1"
os.environ["APP_ENV"] = "test"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from merchant_onboarding.api.main import app  # noqa: E402
from merchant_onboarding.core.applications import ApplicationStore  # noqa: E402
from merchant_onboarding.core.callers import Caller  # noqa: E402
from merchant_onboarding.core.environment import (  # noqa: E402
    Environment,
    get_environment_resolver,
)
from merchant_onboarding.core.prospects import ProspectStore  # noqa: E402
from merchant_onboarding.core.signatures import SignatureService  # noqa: E402
from merchant_onboarding.core.workflow import WorkflowController  # noqa: E402
from merchant_onboarding.database.connection import DatabaseGateway, get_gateway  # noqa: E402
from merchant_onboarding.database.models import (  # noqa: E402
    Acquirer,
    AcquirerApplicationTemplate,
    Agent,
    Base,
    Prospect,
    User,
)

TEST_HOST = "http://localhost"
PRODUCTION_HOST = "http://crm.charrg.com"

# Environments whose SQLite file already holds the schema
_SCHEMA_CREATED: Set[Environment] = set()


@pytest_asyncio.fixture
async def gateway() -> AsyncGenerator[DatabaseGateway, Any]:
    """
    Fresh gateway with empty tables in every environment.

    Tables are created once per run; between tests only their rows are deleted.
    """
    get_environment_resolver.cache_clear()
    get_gateway.cache_clear()
    gw = get_gateway()

    for env in gw.configured_environments():
        async with gw.get_engine(env).begin() as conn:
            if env not in _SCHEMA_CREATED:
                await conn.run_sync(Base.metadata.create_all)
                _SCHEMA_CREATED.add(env)
            for table in reversed(Base.metadata.sorted_tables):
                await conn.execute(table.delete())

    yield gw

    await gw.close()
    get_gateway.cache_clear()
    get_environment_resolver.cache_clear()


@pytest_asyncio.fixture
async def db(gateway: DatabaseGateway) -> AsyncGenerator[AsyncSession, Any]:
    """Session on the development database."""
    async with gateway.session(Environment.DEVELOPMENT) as session:
        yield session
        await session.rollback()


async def seed_environment(session: AsyncSession) -> SimpleNamespace:
    """Users, two agents, one prospect per agent, an acquirer and templates."""
    session.add_all(
        [
            User(id="admin-1", email="admin@example.com", username="admin", roles=["admin"]),
            User(
                id="super-1",
                email="super@example.com",
                username="super",
                roles=["super_admin"],
            ),
            User(id="agent-1", email="agent1@example.com", username="agent1", roles=["agent"]),
            User(id="agent-2", email="agent2@example.com", username="agent2", roles=["agent"]),
            User(
                id="merchant-1",
                email="merchant@example.com",
                username="merchant",
                roles=["merchant"],
            ),
            User(
                id="suspended-1",
                email="suspended@example.com",
                username="suspended",
                roles=["agent"],
                status="suspended",
            ),
        ]
    )
    await session.flush()

    agent_one = Agent(
        user_id="agent-1",
        first_name="Ana",
        last_name="Agent",
        email="ana@agents.example.com",
        phone="555-0101",
    )
    agent_two = Agent(
        user_id="agent-2",
        first_name="Ben",
        last_name="Agent",
        email="ben@agents.example.com",
        phone="555-0102",
    )
    session.add_all([agent_one, agent_two])
    await session.flush()

    prospect = Prospect(
        first_name="Pat",
        last_name="Prospect",
        email="pat@shop.example.com",
        agent_id=agent_one.id,
        form_data={},
    )
    other_prospect = Prospect(
        first_name="Quinn",
        last_name="Prospect",
        email="quinn@shop.example.com",
        agent_id=agent_two.id,
        form_data={},
    )
    unassigned_prospect = Prospect(
        first_name="Uma",
        last_name="Unassigned",
        email="uma@shop.example.com",
        agent_id=None,
        form_data={},
    )
    acquirer = Acquirer(name="wells_fargo", display_name="Wells Fargo", code="WF")
    other_acquirer = Acquirer(name="esquire", display_name="Esquire Bank", code="ESQ")
    session.add_all([prospect, other_prospect, unassigned_prospect, acquirer, other_acquirer])
    await session.flush()

    template = AcquirerApplicationTemplate(
        acquirer_id=acquirer.id,
        template_name="Merchant Processing Application",
        version="2.1",
        field_configuration={"sections": []},
        required_fields=["companyName"],
    )
    inactive_template = AcquirerApplicationTemplate(
        acquirer_id=other_acquirer.id,
        template_name="Legacy Application",
        version="1.0",
        is_active=False,
    )
    session.add_all([template, inactive_template])
    await session.commit()

    return SimpleNamespace(
        agent_one_id=agent_one.id,
        agent_two_id=agent_two.id,
        prospect_id=prospect.id,
        other_prospect_id=other_prospect.id,
        unassigned_prospect_id=unassigned_prospect.id,
        acquirer_id=acquirer.id,
        other_acquirer_id=other_acquirer.id,
        template_id=template.id,
        inactive_template_id=inactive_template.id,
    )


@pytest_asyncio.fixture
async def seed(db: AsyncSession) -> SimpleNamespace:
    """Seed data in the development database."""
    return await seed_environment(db)


@pytest.fixture
def admin() -> Caller:
    return Caller.from_roles("admin-1", ["admin"])


@pytest.fixture
def agent() -> Caller:
    """Agent assigned to the seeded prospect."""
    return Caller.from_roles("agent-1", ["agent"])


@pytest.fixture
def other_agent() -> Caller:
    return Caller.from_roles("agent-2", ["agent"])


@pytest.fixture
def workflow(db: AsyncSession) -> WorkflowController:
    return WorkflowController(ApplicationStore(db), ProspectStore(db), SignatureService(db))


@pytest.fixture
def complete_form_data() -> Dict[str, Any]:
    """Wizard data that passes every required-field and ownership check."""
    return {
        "companyName": "Pat's Coffee LLC",
        "companyEmail": "billing@patscoffee.example.com",
        "companyPhone": "555-0199",
        "address": "100 Main St",
        "city": "Springfield",
        "state": "IL",
        "zipCode": "62701",
        "federalTaxId": "12-3456789",
        "businessType": "llc",
        "yearsInBusiness": "4",
        "businessDescription": "Specialty coffee shop",
        "productsServices": "Coffee, pastries",
        "processingMethod": "card_present",
        "monthlyVolume": "25000",
        "averageTicket": "12.50",
        "highestTicket": "150",
        "owners": [
            {"name": "Pat Prospect", "email": "pat@shop.example.com", "percentage": "60"},
            {"name": "Sam Partner", "email": "sam@shop.example.com", "percentage": 40},
        ],
    }


@pytest_asyncio.fixture
async def client(gateway: DatabaseGateway) -> AsyncGenerator[AsyncClient, Any]:
    """HTTP client resolving to the development database."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url=TEST_HOST) as ac:
        yield ac


@pytest_asyncio.fixture
async def production_client(gateway: DatabaseGateway) -> AsyncGenerator[AsyncClient, Any]:
    """HTTP client on the production hostname."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url=PRODUCTION_HOST) as ac:
        yield ac
