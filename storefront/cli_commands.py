"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask set-usd-rate VALUE: Update the USD exchange rate
"""
import click

from storefront.database import create_all, get_session
from storefront.exceptions import BusinessLogicError


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create database tables."""
        create_all()
        click.echo(click.style('✅ Database tables created.', fg='green'))

    @app.cli.command('set-usd-rate')
    @click.argument('value')
    def set_usd_rate_command(value):
        """Set the USD→TL rate (accepts '35,50' or '35.50')."""
        from storefront.services.cache_service import get_cache
        from storefront.services.currency_service import update_usd_rate

        cache = get_cache()
        try:
            rate = update_usd_rate(
                get_session(),
                value,
                cache=cache,
                redis_client=cache.client if cache.is_available() else None,
                channel=app.config.get('USD_RATE_CHANNEL', 'settings:usd_rate'),
            )
        except BusinessLogicError as e:
            click.echo(click.style(f'❌ {e.message}', fg='red'))
            raise SystemExit(1)
        click.echo(click.style(f'✅ USD rate set to {rate}', fg='green'))
