from decimal import Decimal

from django.http import StreamingHttpResponse


def _csv_cell(value):
    if value is None:
        return ''
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return str(value)
    text = str(value).replace('"', '""')
    return f'"{text}"'


def _csv_line(values):
    return ','.join(_csv_cell(value) for value in values) + '\r\n'


def csv_response(filename, columns, rows):
    """
    Stream rows (dicts) as CSV.

    columns is a list of (key, header) pairs. Strings are quoted with
    embedded quotes doubled, numbers are written bare and missing values
    leave the field empty.
    """
    def generate():
        yield _csv_line([header for _, header in columns])
        for row in rows:
            yield _csv_line([row.get(key) for key, _ in columns])

    response = StreamingHttpResponse(generate(), content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


def wants_csv(request):
    return request.query_params.get('format') == 'csv'
