from apppublisher.cli.serve import main

main()
