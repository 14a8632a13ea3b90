#!/usr/bin/python3

from staking_deployment.cli import cli

if __name__ == "__main__":
    cli()
