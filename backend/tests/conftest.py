"""
Shared pytest fixtures for registry tests.

Fixtures provided:
- plan / make_spec: Sample bundle specs, overridable per test
- spec_document: YAML spec document as bundle images embed it
- encode_label: base64-encode a spec document into a label value
- schema1_manifest / schema2_manifest: Manifest builders
- registry_server: In-process aiohttp registry; yields its base URL

Network tests never leave the machine: adapters are pointed at the
in-process server through RegistryEndpoints.
"""

import base64
import json
from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from bundle.spec import ParameterDescriptor, Plan, Spec


SPEC_ID = "ab094014-b740-495e-b178-946d5aa97ebf"
SPEC_VERSION = "1.0.0"
SPEC_RUNTIME = 1
SPEC_NAME = "etherpad-bundle"
SPEC_IMAGE = "fusor/etherpad-bundle"
SPEC_TAGS = ["latest", "old-release"]
SPEC_DESCRIPTION = "A note taking webapp"

SPEC_DOCUMENT = """\
version: 1.0
name: etherpad-bundle
description: A note taking webapp
bindable: False
async: optional
tags:
  - notes
metadata:
  displayName: Etherpad
plans:
  - name: dev
    description: Basic development plan
    free: True
    bindable: True
    metadata:
      displayName: Development
      cost: $0.00
    parameters:
      - name: postgresql_database
        title: PostgreSQL Database Name
        type: string
        default: admin
      - name: postgresql_version
        title: PostgreSQL Version
        type: enum
        default: 9.5
        enum: ['9.5', '9.4']
      - name: postgresql_user
        title: PostgreSQL User
        type: string
        default: admin
        maxlength: 63
"""


@pytest.fixture
def plan():
    """Single development plan with a few parameters"""
    return Plan(
        name="dev",
        description="Basic development plan",
        metadata={
            "displayName": "Development",
            "longDescription": "Basic development plan",
            "cost": "$0.00",
        },
        free=True,
        bindable=True,
        parameters=[
            ParameterDescriptor(
                name="postgresql_database",
                default="admin",
                type="string",
                title="PostgreSQL Database Name",
            ),
            ParameterDescriptor(
                name="postgresql_version",
                default=9.5,
                enum=["9.5", "9.4"],
                type="enum",
                title="PostgreSQL Version",
            ),
        ],
    )


@pytest.fixture
def make_spec(plan):
    """
    Build a well-formed Spec; keyword arguments override single fields.

    Example:
        make_spec(version="2.0.0") -> spec rejected by version check
    """
    def _make(**overrides):
        fields = dict(
            id=SPEC_ID,
            version=SPEC_VERSION,
            runtime=SPEC_RUNTIME,
            fq_name=SPEC_NAME,
            description=SPEC_DESCRIPTION,
            image=SPEC_IMAGE,
            tags=SPEC_TAGS,
            bindable=False,
            async_="optional",
            plans=[plan],
        )
        fields.update(overrides)
        return Spec(**fields)
    return _make


@pytest.fixture
def spec_document():
    return SPEC_DOCUMENT


@pytest.fixture
def encode_label():
    def _encode(document: str) -> str:
        return base64.b64encode(document.encode("utf-8")).decode("ascii")
    return _encode


@pytest.fixture
def schema1_manifest():
    """
    Build a schema 1 manifest whose first history entry carries labels.

    Each v1Compatibility entry is itself JSON text, as registries serve it.
    """
    def _build(labels=None, extra_history=0):
        history = [
            {"v1Compatibility": json.dumps({"config": {"Labels": labels or {}}})}
        ]
        for index in range(extra_history):
            history.append({"v1Compatibility": json.dumps({"id": f"layer-{index}"})})
        return {"schemaVersion": 1, "name": "repo", "tag": "latest", "history": history}
    return _build


@pytest.fixture
def schema2_manifest():
    def _build(config_digest="sha256:cfg"):
        return {
            "schemaVersion": 2,
            "mediaType": "application/vnd.docker.distribution.manifest.v2+json",
            "config": {
                "mediaType": "application/vnd.docker.container.image.v1+json",
                "digest": config_digest,
            },
            "layers": [],
        }
    return _build


@pytest.fixture
def registry_server():
    """
    Serve aiohttp routes from an in-process test server.

    Usage:
        async with registry_server(web.get("/v2/...", handler)) as base_url:
            ...
    """
    @asynccontextmanager
    async def _serve(*routes):
        app = web.Application()
        app.add_routes(routes)
        server = TestServer(app)
        await server.start_server()
        try:
            yield f"http://{server.host}:{server.port}"
        finally:
            await server.close()
    return _serve
