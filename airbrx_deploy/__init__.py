"""Airbrx deployer: provisions the Airbrx data gateway stack on AWS.

One configuration document per deployment prefix drives an idempotent,
dependency-ordered run of nine phases: storage, identity, artifacts,
compute, edge, a second compute pass, the static site, seeding and
validation. ``status`` and ``teardown`` address the same resources by
the same prefix-derived names.
"""

__version__ = "0.1.0"
