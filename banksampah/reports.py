import base64
from datetime import datetime
from io import BytesIO

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

REPORT_TITLES = {
    'financial': 'Laporan Keuangan',
    'waste': 'Laporan Sampah',
    'users': 'Laporan Pengguna',
}

TABLE_STYLE = TableStyle([
    ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#27ae60')),
    ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
    ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
    ('ALIGN', (1, 1), (-1, -1), 'RIGHT'),
    ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
    ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#e8f5e9')]),
])


def format_rupiah(amount):
    return 'Rp ' + f'{amount:,.0f}'.replace(',', '.')


def _summary_rows(summary):
    rows = [['Keterangan', 'Nilai']]
    for key, value in summary.items():
        rows.append([key.replace('_', ' ').title(), str(value)])
    return rows


def _breakdown_rows(breakdown):
    if not breakdown:
        return None
    columns = list(next(iter(breakdown.values())).keys())
    rows = [['', *[c.replace('_', ' ').title() for c in columns]]]
    for name, entry in breakdown.items():
        rows.append([name, *[str(entry.get(c, '')) for c in columns]])
    return rows


def _table(rows):
    table = Table(rows, hAlign='LEFT')
    table.setStyle(TABLE_STYLE)
    return table


def build_report_pdf(report_type, report):
    """Render a report produced by ``stats.generate_report`` as PDF bytes."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=REPORT_TITLES.get(report_type, 'Laporan'))
    styles = getSampleStyleSheet()
    period = report.get('period') or {}

    story = [
        Paragraph(f'Bank Sampah - {REPORT_TITLES.get(report_type, report_type)}', styles['Title']),
        Paragraph(
            'Periode: %s s/d %s' % (period.get('date_from') or 'awal', period.get('date_to') or 'sekarang'),
            styles['Normal']),
        Paragraph('Dibuat: %s' % datetime.now().strftime('%Y-%m-%d %H:%M:%S'), styles['Normal']),
        Spacer(1, 12),
        Paragraph('Ringkasan', styles['Heading2']),
        _table(_summary_rows(report.get('summary', {}))),
    ]

    sections = (
        ('by_month', 'Per Bulan'),
        ('by_waste_type', 'Per Jenis Sampah'),
        ('by_type', 'Per Jenis Sampah'),
        ('environmental_impact', 'Dampak Lingkungan'),
    )
    for key, title in sections:
        data = report.get(key)
        if not data:
            continue
        story.append(Spacer(1, 12))
        story.append(Paragraph(title, styles['Heading2']))
        if key == 'environmental_impact':
            story.append(_table(_summary_rows(data)))
        else:
            story.append(_table(_breakdown_rows(data)))

    if report.get('top_users'):
        story.append(Spacer(1, 12))
        story.append(Paragraph('Pengguna Teratas', styles['Heading2']))
        rows = [['Nama', 'Submission', 'Berat (kg)', 'Pendapatan']]
        for entry in report['top_users']:
            rows.append([entry['user_name'], str(entry['submissions']),
                         str(entry['total_weight']), format_rupiah(entry['total_earnings'])])
        story.append(_table(rows))

    doc.build(story)
    return buffer.getvalue()


def render_trend_chart(trends, title='Tren Bulanan'):
    """Bar (submissions) + line (weight) chart of monthly trends as a base64 PNG."""
    months = [t['month'] for t in trends]
    fig, ax = plt.subplots(figsize=(8, 4))
    try:
        ax.bar(months, [t['submissions'] for t in trends], color='#a5d6a7', label='Submission')
        ax.set_ylabel('Submission')
        ax.set_title(title)
        ax.tick_params(axis='x', rotation=45)

        weight_ax = ax.twinx()
        weight_ax.plot(months, [t['weight'] for t in trends], color='#27ae60', marker='o', label='Berat (kg)')
        weight_ax.set_ylabel('Berat (kg)')

        fig.tight_layout()
        buffer = BytesIO()
        fig.savefig(buffer, format='png')
    finally:
        plt.close(fig)
    return base64.b64encode(buffer.getvalue()).decode('ascii')
