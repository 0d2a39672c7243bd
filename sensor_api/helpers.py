def split_csv_rows(lines, separator=","):
    """
    Split received records into columns.

    No validation: a record is whatever text the sensor sent on one line,
    so rows may have different lengths.
    """
    return [line.split(separator) for line in lines]


def format_sensor_record(*values, separator=","):
    return separator.join(str(value) for value in values)
