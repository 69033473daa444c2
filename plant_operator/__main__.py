"""Run the plant-operator command line tool."""

from plant_operator.tool.plant_operator import main

if __name__ == "__main__":
    main()
