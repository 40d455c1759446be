from cardinanny.cli import run

run()
