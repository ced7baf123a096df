"""Indexer entry point.

Every command runs its job on the cron schedule from the config file. A run
that is still in progress suppresses the next trigger of the same job.
Pass --once to run the job a single time and exit.

Usage:
    python -m indexer.indexer_runner index --config-file ./sufle.yml
    python -m indexer.indexer_runner vectorize --once
"""

import asyncio
import os
from typing import Awaitable, Callable

import click
import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from indexer.db.models import Base, VersionRepository
from services.indexing.IndexingService import IndexingService
from shared.clients.ClientInterface import ClientInterface
from shared.clients.backend.BackendClient import BackendClient
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.storage.StorageClientManager import StorageClientManager
from shared.db.Database import Database
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.config import IndexerConfig
from shared.models.exceptions import ConfigInvalid

logging = setup_logging("sufle-indexer")

Job = Callable[[IndexingService], Awaitable[object]]

JOBS: dict[str, Job] = {
    "index": lambda service: service.do_index(),
    "vectorize": lambda service: service.do_vectorize(),
    "reduce": lambda service: service.do_reduce(),
}


async def run(name: str, config: IndexerConfig, helper_config: HelperConfig, once: bool) -> None:
    """Build the indexing service and run one job, once or on its schedule."""
    database = Database(helper_config=helper_config, metadata=Base.metadata)
    database.boot()

    backend = BackendClient(helper_config=helper_config, opts=config.backend)
    storage = StorageClientManager(helper_config=helper_config, config=config.storage).get_client()
    embed_client = EmbedClientManager(helper_config=helper_config, config=config.embeddings).get_client()
    clients: list[ClientInterface] = [backend, storage, embed_client]

    service = IndexingService(
        helper_config=helper_config,
        config=config,
        backend=backend,
        storage=storage,
        embed_client=embed_client,
        versions=VersionRepository(database),
    )

    async def job() -> None:
        try:
            await JOBS[name](service)
        except Exception:
            logging.exception("Job '%s' failed.", name)

    try:
        for client in clients:
            await client.boot()
        await check_backend(backend)

        if once:
            await job()
            return

        tz = pytz.timezone(helper_config.get_string_val("TIMEZONE", default="UTC"))
        scheduler = AsyncIOScheduler(timezone=tz)
        scheduler.add_job(
            job,
            CronTrigger.from_crontab(getattr(config.schedule, name), timezone=tz),
            id=name,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        logging.info("%s job started...", name.capitalize())
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.shutdown(wait=False)
    finally:
        for client in clients:
            await client.close()
        database.close()


async def check_backend(backend: BackendClient) -> None:
    """Warn if the API server is not reachable. Jobs fail per document until it is."""
    try:
        result = await backend.do_healthcheck()
    except Exception as e:
        logging.warning("Backend is not reachable: %s", e)
        return
    if not result.is_success:
        logging.warning("Backend is not healthy (status %d).", result.status_code)


def start(name: str, config_file: str, once: bool) -> None:
    helper_config = HelperConfig(logger=logging)
    try:
        config = helper_config.parse(config_file, IndexerConfig)
    except ConfigInvalid as e:
        raise click.ClickException(str(e))
    try:
        asyncio.run(run(name, config, helper_config, once))
    except KeyboardInterrupt:
        logging.info("%s job stopped.", name.capitalize())


##########################################
################ COMMANDS ################
##########################################

config_option = click.option(
    "--config-file",
    default=lambda: os.getenv("CONFIG_PATH", "./sufle.yml"),
    show_default="./sufle.yml",
    help="Path to config file",
)
once_option = click.option("--once", is_flag=True, help="Run the job a single time and exit.")


@click.group()
def cli():
    """Sufle indexer - keeps the knowledge base in line with your files."""


@cli.command()
@config_option
@once_option
def index(config_file: str, once: bool):
    """Index files in the configured workspace directories."""
    start("index", config_file, once)


@cli.command()
@config_option
@once_option
def vectorize(config_file: str, once: bool):
    """Embed new and changed documents."""
    start("vectorize", config_file, once)


@cli.command()
@config_option
@once_option
def reduce(config_file: str, once: bool):
    """Remove documents whose file no longer exists."""
    start("reduce", config_file, once)


if __name__ == "__main__":
    cli()
