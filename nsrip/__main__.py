from nsrip.cli import main

main()
