#!/usr/bin/env python3
"""
AWS CDK App for notes infrastructure

Deploys three stacks per environment:
- PermissionsStack: least privilege managed policies on the deployment role
- NetworkStack: three-tier VPC, gateway endpoints, security groups
- StatefulStack: RDS PostgreSQL, generated credentials, S3 images bucket

Usage: cdk deploy --all --context environment=<preprod|prod>
"""
import logging

import aws_cdk as cdk

from notes_infra.config import resolve
from stacks.composition import compose

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

app = cdk.App()

# Get environment configuration; missing or unknown environments stop here
environment = app.node.try_get_context("environment")
config = resolve(environment)

compose(app, config)

app.synth()
