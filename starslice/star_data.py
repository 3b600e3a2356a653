"""
Static data providers for the built-in HIP catalog.

The local catalog falls back to these tables when an import row has no
distance or position of its own, before any network call is made.
"""

# (hip, name, ra_deg, dec_deg, apparent_mag, parallax_mas)
_BRIGHT_STARS = [
    # Parallaxes from Hipparcos/Gaia
    (32349, "Sirius", 101.2872, -16.7161, -1.46, 379.21),
    (30438, "Canopus", 95.9880, -52.6957, -0.74, 10.43),
    (71683, "Rigil Kentaurus", 219.9009, -60.8356, -0.27, 754.81),
    (69673, "Arcturus", 213.9153, 19.1824, -0.05, 88.83),
    (91262, "Vega", 279.2347, 38.7837, 0.03, 130.23),
    (24608, "Capella", 79.1723, 45.9980, 0.08, 77.29),
    (24436, "Rigel", 78.6345, -8.2016, 0.13, 3.78),
    (37279, "Procyon", 114.8255, 5.2249, 0.34, 286.05),
    (27989, "Betelgeuse", 88.7929, 7.4071, 0.42, 4.51),
    (7588, "Achernar", 24.4285, -57.2368, 0.46, 23.39),
    (68702, "Hadar", 210.9559, -60.3730, 0.61, 8.32),
    (97649, "Altair", 297.6958, 8.8683, 0.76, 194.44),
    (60718, "Acrux", 186.6496, -63.0991, 0.77, 10.13),
    (21421, "Aldebaran", 68.9802, 16.5093, 0.85, 48.94),
    (80763, "Antares", 247.3519, -26.4320, 0.96, 5.89),
    (65474, "Spica", 201.2983, -11.1613, 0.98, 12.44),
    (37826, "Pollux", 116.3289, 28.0262, 1.14, 96.54),
    (113368, "Fomalhaut", 344.4127, -29.6222, 1.16, 130.08),
    (102098, "Deneb", 310.3579, 45.2803, 1.25, 2.31),
    (62434, "Mimosa", 191.9303, -59.6888, 1.25, 12.59),
    (11767, "Polaris", 37.9546, 89.2641, 1.98, 7.54),
    (49669, "Regulus", 152.0929, 11.9672, 1.35, 42.09),
    (36850, "Castor", 113.6494, 31.8883, 1.58, 66.50),
    (25336, "Bellatrix", 81.2828, 6.3497, 1.64, 13.42),
    (25428, "Elnath", 81.5728, 28.6075, 1.65, 23.84),
    (26311, "Alnilam", 84.0534, -1.2019, 1.69, 1.65),
    (26727, "Alnitak", 85.1897, -1.9426, 1.74, 4.43),
    (15863, "Mirfak", 51.0807, 49.8612, 1.79, 6.44),
    (54061, "Dubhe", 165.932, 61.751, 1.79, 26.54),
    (67301, "Alkaid", 206.8852, 49.3133, 1.86, 31.88),
    (28360, "Menkalinan", 89.8822, 44.9474, 1.9, 40.16),
    (31681, "Alhena", 99.4279, 16.5403, 1.93, 30.49),
    (46390, "Alphard", 141.8968, -8.6586, 1.99, 41.35),
    (50583, "Algieba", 154.9926, 19.8415, 2.01, 25.96),
    (3419, "Diphda", 10.8974, -17.9866, 2.04, 33.62),
    (65378, "Mizar", 200.9814, 54.9254, 2.04, 41.73),
    # Andromeda / Pegasus
    (677, "Alpheratz", 2.0969, 29.0904, 2.06, 33.62),
    (5447, "Mirach", 17.4330, 35.6206, 2.05, 16.52),
    (9640, "Almach", 30.9748, 42.3297, 2.10, 9.19),
    (746, "Caph", 2.2945, 59.1498, 2.27, 59.58),
    (1067, "Algenib", 3.3090, 15.1836, 2.83, 7.29),
]


def get_bright_stars():
    """Return data for well-known bright stars.

    Returns list of dicts with: hip, name, ra_deg, dec_deg, apparent_mag,
    parallax_mas. Distance (pc) = 1000 / parallax_mas.
    """
    keys = ("hip", "name", "ra_deg", "dec_deg", "apparent_mag", "parallax_mas")
    return [dict(zip(keys, row)) for row in _BRIGHT_STARS]


def get_field_stars():
    """Return the faint stars of the Alpheratz test field.

    Positions only come with the annotation; distances are the values entered
    for the sample field. Returns list of dicts with: hip, ra_deg, dec_deg and
    optionally distance_pc.
    """
    return [
        {"hip": 544, "ra_deg": 1.2285, "dec_deg": 29.0247, "distance_pc": 13.8},
        {"hip": 540, "ra_deg": 1.1370, "dec_deg": 29.0136, "distance_pc": 14.2},
        {"hip": 502, "ra_deg": 0.9870, "dec_deg": 29.0056, "distance_pc": 15.5},
        {"hip": 423, "ra_deg": 0.8370, "dec_deg": 28.9945, "distance_pc": 16.0},
        {"hip": 971, "ra_deg": 2.6070, "dec_deg": 29.1056, "distance_pc": 18.3},
        {"hip": 956, "ra_deg": 2.5170, "dec_deg": 29.0945},
        {"hip": 410, "ra_deg": 0.8070, "dec_deg": 28.9835},
    ]


def get_field_calibration():
    """Hand-measured pixel positions for the Alpheratz test field.

    Measured on the 4000 x 3000 frame centered at RA 0h08m36.25s,
    Dec +29°03'43.24". Returns {label: (x, y)}.
    """
    return {
        "Alpheratz": (1977.0, 1287.0),
        "A": (2064.0, 894.0),
        "B": (2544.0, 903.0),
        "C": (2832.0, 783.0),
        "D": (732.0, 519.0),
        "E": (2436.0, 2124.0),
        "F": (2625.0, 2091.0),
        "G": (3456.0, 579.0),
    }
