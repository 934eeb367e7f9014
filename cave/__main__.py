from cave.cli.app import main

main()
