"""
Report file writers: CSV through pandas, Excel through openpyxl and PDF
through reportlab. Rows are flat dicts sharing the same keys.
"""
import io

import openpyxl
import pandas as pd
from django.http import HttpResponse
from rest_framework.exceptions import ValidationError
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

EXPORT_FORMATS = ('csv', 'excel', 'pdf')


def export_csv(rows, columns, filename):
    dataframe = pd.DataFrame(rows, columns=columns)
    response = HttpResponse(content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{filename}.csv"'
    dataframe.to_csv(response, index=False)
    return response


def export_excel(rows, columns, filename, title, subtitle='', totals=None):
    """Workbook with a title block, a bold header row and an optional totals row"""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = title[:31]

    header_font = Font(bold=True, size=12)
    title_font = Font(bold=True, size=16)

    last_column = get_column_letter(max(len(columns), 1))
    ws['A1'] = title
    ws['A1'].font = title_font
    ws['A2'] = subtitle
    ws.merge_cells(f'A1:{last_column}1')
    ws.merge_cells(f'A2:{last_column}2')

    for col, header in enumerate(columns, 1):
        cell = ws.cell(row=4, column=col, value=header)
        cell.font = header_font

    row = 5
    for record in rows:
        for col, key in enumerate(columns, 1):
            ws.cell(row=row, column=col, value=record.get(key))
        row += 1

    if totals:
        row += 1
        for col, key in enumerate(columns, 1):
            if key in totals:
                ws.cell(row=row, column=col, value=totals[key]).font = header_font
        ws.cell(row=row, column=1, value="TOTALS:").font = header_font

    for column in ws.iter_cols(min_row=4, max_row=max(row, 4)):
        width = max((len(str(cell.value)) for cell in column if cell.value is not None), default=8)
        ws.column_dimensions[column[0].column_letter].width = min(width + 2, 50)

    response = HttpResponse(content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
    response['Content-Disposition'] = f'attachment; filename="{filename}.xlsx"'
    wb.save(response)
    return response


def export_pdf(rows, columns, filename, title, subtitle='', totals=None):
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=landscape(A4))
    story = []

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'ReportTitle',
        parent=styles['Heading1'],
        fontSize=18,
        spaceAfter=20,
        alignment=1
    )

    story.append(Paragraph(title, title_style))
    if subtitle:
        story.append(Paragraph(subtitle, styles['Heading2']))
    story.append(Spacer(1, 20))

    data = [list(columns)]
    for record in rows:
        data.append([_pdf_cell(record.get(key)) for key in columns])
    if totals:
        data.append([_pdf_cell(totals.get(key, 'TOTALS:' if i == 0 else '')) for i, key in enumerate(columns)])

    table = Table(data, repeatRows=1)
    style = [
        ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
    ]
    if totals:
        style += [
            ('BACKGROUND', (0, -1), (-1, -1), colors.lightgrey),
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ]
    table.setStyle(TableStyle(style))
    story.append(table)

    doc.build(story)

    buffer.seek(0)
    response = HttpResponse(buffer, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{filename}.pdf"'
    return response


def _pdf_cell(value):
    if value is None:
        return ''
    if isinstance(value, float):
        return f"{value:.2f}"
    text = str(value)
    return text if len(text) <= 40 else text[:37] + '...'


def export_response(export_format, rows, columns, filename, title, subtitle='', totals=None):
    """``export_format`` is the ``?format=`` value: csv, excel or pdf"""
    if export_format == 'csv':
        return export_csv(rows, columns, filename)
    if export_format == 'excel':
        return export_excel(rows, columns, filename, title, subtitle, totals)
    if export_format == 'pdf':
        return export_pdf(rows, columns, filename, title, subtitle, totals)
    raise ValidationError({'format': f"Unsupported export format '{export_format}'"})
