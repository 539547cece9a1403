"""
Mock adapter.

Serves a fixed in-memory catalog without touching the network. Used by
registries of type "mock" for demos and broker tests.
"""

import logging
from typing import List, Optional, Sequence

from bundle.spec import ParameterDescriptor, Plan, Spec
from registries.config import Config

logger = logging.getLogger(__name__)

MOCK_NAME = "mock"


def _default_catalog() -> List[Spec]:
    dev_plan = Plan(
        name="dev",
        description="Basic development plan",
        metadata={"displayName": "Development", "cost": "$0.00"},
        free=True,
        bindable=True,
        parameters=[
            ParameterDescriptor(
                name="mariadb_database",
                type="string",
                title="MariaDB Database Name",
                default="admin",
            ),
            ParameterDescriptor(
                name="mariadb_password",
                type="string",
                title="MariaDB Password",
                description="A random alphanumeric string if left blank",
                default="admin",
            ),
        ],
    )
    prod_plan = Plan(
        name="prod",
        description="Production plan with persistent storage",
        metadata={"displayName": "Production", "cost": "$0.10/hour"},
        free=False,
        bindable=True,
        parameters=[
            ParameterDescriptor(
                name="postgresql_version",
                type="enum",
                title="PostgreSQL Version",
                default="9.6",
                enum=["9.6", "9.5"],
            ),
        ],
    )
    return [
        Spec(
            id="ab094014-b740-495e-b178-946d5aa97ebf",
            version="1.0",
            runtime=2,
            fq_name="etherpad-bundle",
            description="A note taking webapp",
            image="mock/etherpad-bundle:latest",
            tags=["notes", "webapp"],
            bindable=False,
            async_="optional",
            plans=[dev_plan],
        ),
        Spec(
            id="1dda1477cace09730bd8ed7a6505607e",
            version="1.0",
            runtime=2,
            fq_name="postgresql-bundle",
            description="SCL PostgreSQL database",
            image="mock/postgresql-bundle:latest",
            tags=["database", "postgresql"],
            bindable=True,
            async_="optional",
            plans=[dev_plan, prod_plan],
        ),
    ]


class MockAdapter:
    """Adapter returning a fixed catalog"""

    def __init__(self, config: Config, specs: Optional[Sequence[Spec]] = None):
        self.config = config
        self.specs = list(specs) if specs is not None else _default_catalog()

    def registry_name(self) -> str:
        return MOCK_NAME

    async def get_image_names(self) -> List[str]:
        return [spec.image for spec in self.specs]

    async def fetch_specs(self, names: List[str]) -> List[Spec]:
        wanted = set(names)
        specs = [spec for spec in self.specs if spec.image in wanted]
        logger.debug(f"Mock registry returning {len(specs)} of {len(self.specs)} specs")
        return specs
