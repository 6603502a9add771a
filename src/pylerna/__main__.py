from pylerna.cli.app import main

main()
