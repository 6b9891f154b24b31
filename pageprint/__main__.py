from pageprint.main import main

main()
