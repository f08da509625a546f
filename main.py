#!/usr/bin/env python3
"""
User Story to Tests

Generate structured QA test cases from user stories with an LLM, pull stories
from Jira and produce mock data, from the command line or over HTTP.
"""

import click
import json
import logging
import os
import sys
from typing import Optional

from storytests.config import Config, CONFIG_PATH_ENV
from storytests.exceptions import StoryTestsError
from storytests.jira_client import JiraClient
from storytests.llm_client import LLMClient
from storytests.case_generator import TestCaseGenerator
from storytests.issue_resolver import IssueResolver
from storytests.logging_setup import setup_logging
from storytests.mock_data import MockDataGenerator
from storytests.models import StoryRequest, MockDataRequest, CATEGORIES


def create_clients(config: Config):
    """Create API clients from configuration"""
    llm_client = LLMClient(config.get_llm_settings())

    # Jira client (optional; None when credentials are missing)
    jira_client = JiraClient.from_settings(config.get_jira_settings())

    return llm_client, jira_client


def create_resolver(config: Config, jira_client: Optional[JiraClient]) -> IssueResolver:
    return IssueResolver(jira_client, search_max_results=config.get_jira_settings().search_max_results)


def print_cases_summary(response):
    """Print a table-like summary of generated test cases"""
    click.echo(f"\n{len(response.cases)} test case(s) generated"
               + (f" • Model: {response.model}" if response.model else "")
               + (f" • Tokens: {response.promptTokens + response.completionTokens}" if response.promptTokens > 0 else ""))
    for case in response.cases:
        click.echo(f"  {case.id}  [{case.category}]  {case.title}")
        click.echo(f"      Expected: {case.expectedResult}")


def _echo_json(payload):
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@click.group()
@click.option('--config', '-c', default=None, help='Configuration file path (defaults to ./config.yaml when present)')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, config, verbose):
    """User Story to Tests - QA test case generation"""
    try:
        config_obj = Config(config)
    except Exception as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    setup_logging(config_obj.get_logging_settings().level, verbose)
    config_obj.validate()

    ctx.obj = config_obj


@cli.command()
@click.option('--title', '-t', help='Story title')
@click.option('--acceptance', '-a', help='Acceptance criteria')
@click.option('--description', '-d', default='', help='Story description')
@click.option('--additional-info', default='', help='Additional context')
@click.option('--from-jira', 'from_jira', help='Load story fields from this Jira issue key')
@click.option('--category', 'categories', multiple=True, type=click.Choice(CATEGORIES),
              help='Restrict generation to a category (repeatable)')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write the JSON response to this file')
@click.pass_context
def generate(ctx, title, acceptance, description, additional_info, from_jira, categories, output):
    """Generate test cases for a user story"""
    config = ctx.obj
    logger = logging.getLogger(__name__)

    llm_client, jira_client = create_clients(config)
    if not llm_client.is_configured:
        click.echo("❌ GROQ_API_KEY is not configured", err=True)
        sys.exit(1)

    fields = {
        'storyTitle': title or '',
        'acceptanceCriteria': acceptance or '',
        'description': description,
        'additionalInfo': additional_info,
    }

    try:
        if from_jira:
            logger.info(f"Loading story fields from {from_jira}")
            story = create_resolver(config, jira_client).fetch_story(from_jira)
            # Explicit options override fetched fields
            fields = {key: value or getattr(story, key) for key, value in fields.items()}

        request = StoryRequest(**fields, categories=list(categories) or None)
    except StoryTestsError as e:
        click.echo(f"❌ {e.message}", err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"❌ Invalid story: {e}", err=True)
        sys.exit(1)

    try:
        response = TestCaseGenerator(llm_client).generate(request)
    except StoryTestsError as e:
        click.echo(f"❌ {e.message}", err=True)
        sys.exit(1)

    print_cases_summary(response)

    if output:
        with open(output, 'w', encoding='utf-8') as f:
            json.dump(response.model_dump(), f, indent=2, ensure_ascii=False)
        click.echo(f"\n✅ Saved to {output}")


@cli.command()
@click.argument('issue_key')
@click.option('--debug', is_flag=True, help='Include the raw Jira response')
@click.pass_context
def story(ctx, issue_key, debug):
    """Fetch a Jira issue as story fields"""
    config = ctx.obj
    _, jira_client = create_clients(config)

    try:
        resolution = create_resolver(config, jira_client).resolve(issue_key, debug=debug)
    except StoryTestsError as e:
        click.echo(f"❌ {e.message}", err=True)
        sys.exit(1)

    _echo_json(resolution.payload)
    if not resolution.ok:
        if resolution.fallback_issues:
            click.echo(f"\n⊝ {issue_key} not found; showing {len(resolution.fallback_issues)} issue(s) from the same project", err=True)
        sys.exit(1)


@cli.command('auth-check')
@click.pass_context
def auth_check(ctx):
    """Check Jira credentials"""
    config = ctx.obj
    _, jira_client = create_clients(config)

    try:
        resolution = create_resolver(config, jira_client).check_auth()
    except StoryTestsError as e:
        click.echo(f"❌ {e.message}", err=True)
        sys.exit(1)

    if resolution.payload.get('ok'):
        click.echo("✅ Jira credentials are valid")
    else:
        click.echo(f"❌ {resolution.payload.get('message')} (status {resolution.payload.get('status')})")
        sys.exit(1)


@cli.command()
@click.option('--rows', '-n', default=10, type=click.IntRange(1, 10000), help='Number of rows')
@click.option('--schema', '-s', 'schema_description', required=True, help='Schema description, e.g. "id, name, email"')
@click.option('--format', '-f', 'fmt', default='json', type=click.Choice(['json', 'csv']), help='Output format')
@click.option('--seed', type=int, default=None, help='Seed passed to the model')
@click.option('--preview', is_flag=True, help='Print the prompt instead of generating data')
@click.pass_context
def mockdata(ctx, rows, schema_description, fmt, seed, preview):
    """Generate mock data from a schema description"""
    config = ctx.obj
    llm_client, _ = create_clients(config)

    request = MockDataRequest(rows=rows, schemaDescription=schema_description, format=fmt,
                              seed=seed, previewOnly=preview)
    response = MockDataGenerator(llm_client).generate(request)

    click.echo(response.prompt if preview else response.data)


@cli.command()
@click.option('--host', default=None, help='Bind address (defaults to server.host)')
@click.option('--port', default=None, type=int, help='Port (defaults to server.port)')
@click.option('--reload', is_flag=True, help='Reload on code changes')
@click.pass_context
def serve(ctx, host, port, reload):
    """Run the HTTP API"""
    import uvicorn

    config = ctx.obj
    server = config.get_server_settings()
    if config.config_path:
        # The app loads its own Config; point it at the same file
        os.environ[CONFIG_PATH_ENV] = config.config_path

    uvicorn.run(
        "api.main:app",
        host=host or server.host,
        port=port or server.port,
        reload=reload,
        log_level=config.get_logging_settings().level.lower()
    )


if __name__ == '__main__':
    cli()
