from speechrelay.main import main

main()
