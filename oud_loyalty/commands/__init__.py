"""
CLI Commands for the Oud loyalty engine.

Usage:
    flask loyalty tiers                            # Print the tier catalog
    flask loyalty process-degradations --dry-run   # Preview tier expiry results
    flask loyalty process-degradations             # Renew or downgrade expired tiers
    flask loyalty seed-demo                        # Create the cust_001 demo profile
"""
from .loyalty import init_app as init_loyalty_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_loyalty_commands(app)
