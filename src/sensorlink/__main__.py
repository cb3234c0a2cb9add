from sensorlink.cli.main import main

main()
