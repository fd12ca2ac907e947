from freshcheck_cli.diagnose_cmd import main

main()
