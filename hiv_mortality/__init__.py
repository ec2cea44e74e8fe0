"""HIV mortality trends by age, sex, year and GDP per capita."""
