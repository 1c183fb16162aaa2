"""
A simple CLI for running the server and setting up the database.
"""

import os
import sys

import uvicorn


def run_server(**kwargs):
    for k, v in kwargs.items():
        os.environ[k] = v

    uvicorn.run("studygroup.api.app:app", host="0.0.0.0")


def setup():
    from studygroup.config.settings import Settings

    settings = Settings()
    settings.sync_manager().create_all()


def main():
    try:
        run = sys.argv[1] == "run"
        do_setup = sys.argv[1] == "setup"
        dev = run and sys.argv[2] == "dev"
    except IndexError:
        print(
            "Only supported commands are studygroup run dev, studygroup run prod, or studygroup setup"
        )
        exit(1)

    if dev:
        from testcontainers.postgres import PostgresContainer

        with PostgresContainer() as container:
            print(
                f"Container details: username={container.username}, password={container.password}, port={container.get_exposed_port(container.port)}"
            )

            environment = {
                "STUDYGROUP_DATABASE_TYPE": "postgres",
                "STUDYGROUP_DATABASE_USER": container.username,
                "STUDYGROUP_DATABASE_PASSWORD": container.password,
                "STUDYGROUP_DATABASE_PORT": str(
                    container.get_exposed_port(container.port)
                ),
                "STUDYGROUP_DATABASE_HOST": "localhost",
                "STUDYGROUP_DATABASE_DB": container.dbname,
                "STUDYGROUP_DATABASE_ECHO": "False",
                "STUDYGROUP_CREATE_TABLES": "True",
            }

            run_server(**environment)
    elif run:
        setup()
        run_server()

    if do_setup:
        setup()

        print("Setup complete, the database tables are in place")
        exit(0)
