"""
tests/conftest.py
Shared fixtures for the ddlapi test suite.

Fixtures provide DDL inputs as plain strings, helpers that run them through
the parser, the model builder or the full pipeline, and real files written
inside pytest's tmp_path directories.  No mocking libraries are used.
"""

from __future__ import annotations

import pathlib
import textwrap
from typing import Any, Callable, Dict, List, Tuple

import pytest
import yaml

from ddlapi.ast_nodes import Statement
from ddlapi.builder import DomainModelBuilder
from ddlapi.config import PipelineConfig
from ddlapi.diagnostics import Diagnostics
from ddlapi.models import DomainModel
from ddlapi.parser import parse_sql
from ddlapi.pipeline import PipelineResult, SchemaPipeline


# ---------------------------------------------------------------------------
# DDL inputs
# ---------------------------------------------------------------------------

BLOG_DDL: str = textwrap.dedent(
    """\
    CREATE TABLE users (
        id SERIAL PRIMARY KEY,
        email VARCHAR(255) NOT NULL UNIQUE,
        display_name TEXT,
        status VARCHAR(20) NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'banned')),
        age INTEGER CHECK (age BETWEEN 13 AND 130),
        created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now()
    );

    CREATE TABLE posts (
        id BIGSERIAL PRIMARY KEY,
        author_id INTEGER NOT NULL REFERENCES users (id) ON DELETE CASCADE,
        title VARCHAR(200) NOT NULL,
        body TEXT,
        score NUMERIC(5, 2) DEFAULT 0,
        CONSTRAINT posts_score_check CHECK (score >= 0 AND score <= 100)
    );

    CREATE TABLE tags (
        id SERIAL PRIMARY KEY,
        name VARCHAR(50) NOT NULL UNIQUE
    );

    CREATE TABLE post_tags (
        post_id BIGINT NOT NULL REFERENCES posts (id),
        tag_id INTEGER NOT NULL REFERENCES tags (id),
        PRIMARY KEY (post_id, tag_id)
    );

    CREATE INDEX idx_posts_title ON posts (title);
    """
)

MYSQL_DDL: str = textwrap.dedent(
    """\
    # shop schema
    CREATE TABLE `customers` (
        `id` INT UNSIGNED NOT NULL AUTO_INCREMENT,
        `email` VARCHAR(190) NOT NULL,
        `is_active` TINYINT(1) NOT NULL DEFAULT 1,
        PRIMARY KEY (`id`),
        UNIQUE KEY `uq_customers_email` (`email`)
    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;

    CREATE TABLE `orders` (
        `id` INT UNSIGNED NOT NULL AUTO_INCREMENT,
        `customer_id` INT UNSIGNED NOT NULL,
        `state` ENUM('new', 'paid', 'shipped') NOT NULL DEFAULT 'new',
        `total` DECIMAL(10, 2) NOT NULL,
        PRIMARY KEY (`id`),
        KEY `idx_orders_state` (`state`),
        CONSTRAINT `fk_orders_customer` FOREIGN KEY (`customer_id`) REFERENCES `customers` (`id`)
    ) ENGINE=InnoDB COMMENT='Customer orders';
    """
)

SCENARIO_USERS: str = (
    "CREATE TABLE users (id INTEGER PRIMARY KEY, email VARCHAR(255) UNIQUE NOT NULL);"
)
SCENARIO_POSTS: str = (
    "CREATE TABLE posts (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES users(id));"
)


# ---------------------------------------------------------------------------
# Helper fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def blog_ddl() -> str:
    return BLOG_DDL


@pytest.fixture()
def mysql_ddl() -> str:
    return MYSQL_DDL


@pytest.fixture()
def scenario_sources() -> List[Tuple[str, str]]:
    """Two inputs forming one schema: users first, then posts referencing it."""
    return [("users.sql", SCENARIO_USERS), ("posts.sql", SCENARIO_POSTS)]


@pytest.fixture()
def parse()-> Callable[..., Tuple[List[Statement], Diagnostics]]:
    """Return a helper: ``parse(text, dialect)`` → (statements, diagnostics)."""

    def _parse(text: str, dialect: str = "postgresql") -> Tuple[List[Statement], Diagnostics]:
        diagnostics = Diagnostics()
        result = parse_sql(text, dialect, diagnostics, source="test.sql")
        return list(result.statements), diagnostics

    return _parse


@pytest.fixture()
def build() -> Callable[..., Tuple[DomainModel, Diagnostics]]:
    """Return a helper: ``build(text, dialect, schema_filter)`` → (model, diagnostics)."""

    def _build(
        text: str,
        dialect: str = "postgresql",
        schema_filter: str | None = None,
    ) -> Tuple[DomainModel, Diagnostics]:
        diagnostics = Diagnostics()
        result = parse_sql(text, dialect, diagnostics, source="test.sql")
        model = DomainModelBuilder(dialect, schema_filter=schema_filter).build(
            result.statements, diagnostics
        )
        return model, diagnostics

    return _build


@pytest.fixture()
def run_pipeline() -> Callable[..., PipelineResult]:
    """Return a helper: ``run_pipeline(text, **config)`` → PipelineResult."""

    def _run(text: str, **config: Any) -> PipelineResult:
        return SchemaPipeline(PipelineConfig(**config)).run_text(text, source="test.sql")

    return _run


@pytest.fixture()
def blog_result(run_pipeline: Callable[..., PipelineResult]) -> PipelineResult:
    return run_pipeline(BLOG_DDL)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


@pytest.fixture()
def blog_sql_path(tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the blog schema to a temporary .sql file and return its path."""
    path = tmp_path / "blog.sql"
    path.write_text(BLOG_DDL, encoding="utf-8")
    return path


@pytest.fixture()
def config_dict() -> Dict[str, Any]:
    return {
        "ddlapi": {
            "dialect": "postgres",
            "naming_strategy": "singular",
            "relationship_mode": "embed",
            "default_limit": 25,
            "max_limit": 200,
        }
    }


@pytest.fixture()
def config_yaml_path(config_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the config dict to a temporary YAML file and return its path."""
    path = tmp_path / "ddlapi.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(config_dict, fh, default_flow_style=False)
    return path
