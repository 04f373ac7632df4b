"""
导出服务
将项目的合作明细及财务指标导出为Excel格式（.xlsx）
"""
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from sqlalchemy.orm import Session, joinedload

from kol_app.models.collaboration import Collaboration
from kol_app.models.project import Project
from kol_app.services.metrics_engine import compute_metrics, report_today
from kol_app.utils.data_processor import round2, to_number

SHEET_NAME = "合作明细"


class ExportService:
    """导出服务类"""

    def __init__(self, export_folder: str = "exports"):
        self.export_folder = Path(export_folder)
        self.export_folder.mkdir(parents=True, exist_ok=True)

    def export_project_collaborations(self, db: Session, project_id: str, today=None) -> str:
        """
        导出项目下全部合作记录

        返回:
            导出文件的路径
        """
        project = db.query(Project).options(joinedload(Project.capital_rate)).filter(
            Project.id == project_id
        ).first()
        if project is None:
            raise ValueError("项目不存在")

        collaborations = db.query(Collaboration).options(joinedload(Collaboration.talent)).filter(
            Collaboration.project_id == project_id
        ).order_by(Collaboration.created_at, Collaboration.id).all()
        if not collaborations:
            raise ValueError("没有可导出的数据")

        today = today or report_today()
        rows = []
        for c in collaborations:
            m = compute_metrics(c, project, project.capital_rate, today)
            rows.append({
                "达人": c.talent.nickname if c.talent else "",
                "状态": c.status or "",
                "下单方式": c.order_type or "",
                "下单日期": c.order_date.isoformat() if c.order_date else "",
                "发布日期": c.publish_date.isoformat() if c.publish_date else "",
                "回款日期": c.payment_date.isoformat() if c.payment_date else "",
                "金额": to_number(c.amount, 0),
                "返点(%)": to_number(c.rebate, 0),
                "收入": round2(m.income),
                "支出": round2(m.expense),
                "应收返点": round2(m.rebate_receivable),
                "计入利润返点": round2(m.rebate_for_profit_calc),
                "占用天数": m.occupation_days,
                "资金占用费用": round2(m.funds_occupation_cost),
                "毛利": round2(m.gross_profit),
                "毛利率(%)": round2(m.gross_profit_margin),
            })

        df = pd.DataFrame(rows)
        filepath = self.export_folder / self._generate_filename(project)
        self._export_default(df, filepath)
        return str(filepath)

    def _generate_filename(self, project: Project, now: Optional[datetime] = None) -> str:
        timestamp = (now or datetime.now()).strftime('%Y%m%d_%H%M%S')
        name = "".join(ch for ch in (project.name or project.id) if ch not in '\\/:*?"<>|')
        return f"{name}_合作明细_{timestamp}.xlsx"

    def _export_default(self, df: pd.DataFrame, filepath: Path):
        with pd.ExcelWriter(filepath, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name=SHEET_NAME)

            worksheet = writer.sheets[SHEET_NAME]

            # 设置表头样式
            header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
            header_font = Font(bold=True, color="FFFFFF", size=11)
            header_alignment = Alignment(horizontal="center", vertical="center")

            for cell in worksheet[1]:
                cell.fill = header_fill
                cell.font = header_font
                cell.alignment = header_alignment

            # 调整列宽
            for column in worksheet.columns:
                column_letter = get_column_letter(column[0].column)
                max_length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
                worksheet.column_dimensions[column_letter].width = min(max_length + 4, 50)
