# file: scamshield/__main__.py
from scamshield.cli import main

main(prog_name="scamshield")
