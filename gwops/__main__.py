from gwops.cli.app import main

main()
