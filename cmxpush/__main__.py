from cmxpush.cli import main

main()
